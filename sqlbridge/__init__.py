from ._prototype import DatabasePrototype, Transaction
from .exceptions import (
    DatabaseError, UnsupportedParameterType, PrepareOrBindFailure,
    ExecutionFailure, ConnectionFailure, QueryError,
)
from .fetchmode import FetchMode
from .parameter import ParamType, Parameter, ParameterSet
from .query import Query
from .scanner import replace_prefix, map_placeholders, split_sql, PlaceholderMapping
from .statement import Statement, NativeShapedStatement, EmulatedShapedStatement
from .sqlite3 import SQLiteWrapper
from .mysql import MySqlWrapper
from .init import database_init, parse_dsn, create_from_dsn

# Optional imports: only load if dependencies are available
try:
    from .postgresql import PostgreSQLWrapper
except ImportError:
    PostgreSQLWrapper = None
