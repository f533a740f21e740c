class DatabaseError(RuntimeError):
    """
    Base error for the database layer.

    Carries the native error code and, where known, the SQL text that was
    sent to the driver. Bound values are never part of the message.
    """

    def __init__(self, message="", code=0, sql=""):
        super().__init__(message)
        self.message = message
        self.code = code
        self.sql = sql

    def set_sql(self, sql):
        self.sql = sql
        return self

    def get_sql(self):
        return self.sql

    def __str__(self):
        text = self.message
        if self.code:
            text = f"({self.code}) {text}"
        return text


class UnsupportedParameterType(DatabaseError, ValueError):
    def __init__(self, param_type, sql=""):
        super().__init__(f"Unsupported parameter type `{param_type}`", 0, sql)
        self.param_type = param_type


class PrepareOrBindFailure(DatabaseError):
    pass


class ExecutionFailure(DatabaseError):
    pass


class ConnectionFailure(DatabaseError):
    pass


class QueryError(DatabaseError):
    pass
