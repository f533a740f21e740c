from setuptools import setup, find_packages

setup(
    name='sqlbridge',
    version='0.1.0',
    description='Driver independent prepared statements with named placeholders and table prefixes',
    packages=find_packages(exclude=['tests', 'tests.*']),
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
    python_requires='>=3.8',
    install_requires=[
        "pymysql>=1.1.1",  # MySQL sync is always included
    ],
    extras_require={
        "postgresql": ["psycopg2-binary>=2.9.0"],
        "test": ["pytest>=7.0"],
        "all": [
            "psycopg2-binary>=2.9.0",
        ],
    },
)
