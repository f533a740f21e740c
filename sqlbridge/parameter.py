from enum import Enum

from .exceptions import UnsupportedParameterType


class ParamType(Enum):
    """Driver independent type of a bound value."""
    BOOL = "bool"
    NULL = "null"
    INT = "int"
    STR = "string"
    LOB = "lob"

    @classmethod
    def from_value(cls, param_type):
        """
        Resolve a ParamType from an enum member or one of its spellings.

        None resolves to STR. Anything else that is not recognised raises
        UnsupportedParameterType.
        """
        if param_type is None:
            return cls.STR
        if isinstance(param_type, cls):
            return param_type
        if isinstance(param_type, str):
            found = _ALIASES.get(param_type.strip().lower())
            if found is not None:
                return found
        raise UnsupportedParameterType(param_type)


_ALIASES = {
    "bool": ParamType.BOOL,
    "boolean": ParamType.BOOL,
    "null": ParamType.NULL,
    "int": ParamType.INT,
    "integer": ParamType.INT,
    "i": ParamType.INT,
    "string": ParamType.STR,
    "str": ParamType.STR,
    "s": ParamType.STR,
    "blob": ParamType.LOB,
    "lob": ParamType.LOB,
    "b": ParamType.LOB,
}


def normalize_key(key):
    """Named keys are stored without their leading colon; positions stay ints."""
    if isinstance(key, str):
        return key.lstrip(":")
    if isinstance(key, int) and not isinstance(key, bool):
        return key
    raise TypeError(f"Parameter key must be str or int, not {type(key).__name__}")


class Parameter:
    def __init__(self, key, value, param_type=ParamType.STR, max_length=0, driver_options=None):
        self.key = normalize_key(key)
        self.value = value
        self.param_type = ParamType.from_value(param_type)
        self.max_length = max_length or 0
        self.driver_options = driver_options

    @property
    def is_named(self):
        return isinstance(self.key, str)

    def __eq__(self, other):
        if not isinstance(other, Parameter):
            return NotImplemented
        return (self.key, self.value, self.param_type) == (other.key, other.value, other.param_type)

    def __repr__(self):
        # Values stay out of reprs; they end up in logs.
        return f"Parameter({self.key!r}, type={self.param_type.value})"


class ParameterSet:
    """
    Parameters bound to a query, kept in insertion order.

    Binding a key again overwrites the value and keeps its first slot.
    """

    def __init__(self):
        self._params = {}

    def bind(self, key, value, param_type=ParamType.STR, max_length=0, driver_options=None):
        param = Parameter(key, value, param_type, max_length, driver_options)
        self._params[param.key] = param
        return param

    def bind_values(self, values, param_type=ParamType.STR):
        """Bind a mapping by key or a sequence by position."""
        if isinstance(values, dict):
            items = values.items()
        else:
            items = enumerate(values)
        for key, value in items:
            self.bind(key, value, param_type)
        return self

    def unbind(self, key):
        if isinstance(key, (list, tuple, set)):
            for k in key:
                self._params.pop(normalize_key(k), None)
        else:
            self._params.pop(normalize_key(key), None)

    def get(self, key):
        return self._params.get(normalize_key(key))

    def get_bound(self):
        return list(self._params.values())

    def clear(self):
        self._params.clear()

    def __contains__(self, key):
        return normalize_key(key) in self._params

    def __iter__(self):
        return iter(self.get_bound())

    def __len__(self):
        return len(self._params)

    @classmethod
    def from_values(cls, values, param_type=ParamType.STR):
        return cls().bind_values(values, param_type)
