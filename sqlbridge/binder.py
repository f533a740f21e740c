"""
Binding of a ParameterSet onto a native statement.

There are two native models. A named-capable statement accepts one
``bind(key, value, native_type, ...)`` call per parameter. A positional-only
statement takes every value at once through
``bind_all(type_codes, *values)``, where each character of `type_codes`
describes the value at the same position.
"""
from .exceptions import PrepareOrBindFailure, UnsupportedParameterType
from .parameter import ParamType

# Native vocabulary of named-capable statements.
NATIVE_BOOL = "bool"
NATIVE_INT = "int"
NATIVE_LOB = "lob"
NATIVE_STR = "string"

NAMED_TYPE_MAP = {
    ParamType.BOOL: NATIVE_BOOL,
    ParamType.INT: NATIVE_INT,
    ParamType.LOB: NATIVE_LOB,
    ParamType.NULL: NATIVE_STR,
    ParamType.STR: NATIVE_STR,
}

POSITIONAL_TYPE_MAP = {
    ParamType.BOOL: "i",
    ParamType.INT: "i",
    ParamType.LOB: "b",
    ParamType.NULL: "s",
    ParamType.STR: "s",
}

UNIFORM_TYPE_CODE = "s"


def _native_value(param):
    if param.param_type is ParamType.NULL:
        return None
    return param.value


def coerce_string(value):
    if value is None or isinstance(value, (str, bytes)):
        return value
    if isinstance(value, bool):
        return str(int(value))
    return str(value)


def coerce_lob(value):
    if value is None or isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return coerce_string(value).encode("utf-8")


def _missing_names(mapping, bound):
    missing = [name for name in mapping.names if name not in bound]
    if missing:
        return "No value bound for " + ", ".join(f":{name}" for name in missing)
    return None


class NamedBinder:
    """
    Binds each parameter by key. When a placeholder mapping of the query is
    given, every name in it must have a value.
    """
    type_map = NAMED_TYPE_MAP

    def __init__(self, native, sql="", mapping=None):
        self.native = native
        self.sql = sql
        self.mapping = mapping

    def translate(self, param_type):
        try:
            return self.type_map[param_type]
        except KeyError:
            raise UnsupportedParameterType(param_type, self.sql) from None

    def apply(self, parameters):
        self.native.clear_bindings()
        for param in parameters:
            native_type = self.translate(param.param_type)
            bound = self.native.bind(
                param.key,
                _native_value(param),
                native_type,
                param.max_length or None,
                param.driver_options,
            )
            if not bound:
                raise PrepareOrBindFailure(self.native.error, self.native.errno, self.sql)

        if self.mapping:
            message = _missing_names(self.mapping, {param.key for param in parameters})
            if message:
                raise PrepareOrBindFailure(message, 0, self.sql)


class PositionalBinder:
    type_map = POSITIONAL_TYPE_MAP

    def __init__(self, native, mapping, sql=""):
        self.native = native
        self.mapping = mapping
        self.sql = sql

    def type_code(self, param_type):
        try:
            return self.type_map[param_type]
        except KeyError:
            raise UnsupportedParameterType(param_type, self.sql) from None

    def arrange(self, parameters):
        """
        Return ``(type_codes, values)`` in placeholder order.

        A name used at several positions gets its value copied into each of
        them.
        """
        if not self.mapping:
            # Raw positional markers; bind in call order as strings.
            values = [_native_value(param) for param in parameters]
            return UNIFORM_TYPE_CODE * len(values), values

        count = len(self.mapping)
        codes = [None] * count
        values = [None] * count

        for param in parameters:
            positions = self.mapping.positions(param.key) if param.is_named else []
            if not positions:
                raise PrepareOrBindFailure(
                    f"Parameter `{param.key}` is not defined in the query", 0, self.sql)

            code = self.type_code(param.param_type)
            value = _native_value(param)
            for position in positions:
                codes[position] = code
                values[position] = value

        message = _missing_names(self.mapping, {param.key for param in parameters})
        if message:
            raise PrepareOrBindFailure(message, 0, self.sql)

        return "".join(codes), values

    def apply(self, parameters):
        type_codes, values = self.arrange(parameters)
        if not self.native.bind_all(type_codes, *values):
            raise PrepareOrBindFailure(self.native.error, self.native.errno, self.sql)
