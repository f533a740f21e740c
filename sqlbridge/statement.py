"""
Prepared statements over the two native driver models.

NativeShapedStatement wraps a named-capable native statement, which is
expected to provide::

    prepare(text) -> bool
    clear_bindings()
    bind(key, value, native_type, max_length=None, driver_options=None) -> bool
    execute() -> bool
    columns                      # list of names, or None without a result set
    fetch(mode) -> row | None | False
    row_count() -> int
    close_cursor()
    error, errno, exception      # details of the last failure

EmulatedShapedStatement wraps a positional-only native statement, which
only hands out fixed-arity rows through output variables bound up front::

    prepare(text) -> bool
    bind_all(type_codes, *values) -> bool
    execute() -> bool
    result_metadata() -> [Column] | None
    store_result()
    bind_result(outputs) -> bool     # `outputs` is filled in place by fetch()
    fetch() -> True | None | False
    free_result()
    affected_rows, num_rows
    error, errno, exception
"""
from collections import namedtuple
from enum import Enum

from .binder import NamedBinder, PositionalBinder
from .exceptions import ExecutionFailure, PrepareOrBindFailure, UnsupportedParameterType
from .fetchmode import FetchMode, shape_row
from .parameter import ParameterSet, ParamType
from .scanner import map_placeholders

Column = namedtuple("Column", ["name"])


class StatementState(Enum):
    PREPARED = "prepared"
    EXECUTED = "executed"
    EXHAUSTED = "exhausted"
    CLOSED = "closed"


class Statement:
    def __init__(self, native, query):
        self.native = native
        self.query = query
        self.parameters = ParameterSet()
        self.fetch_mode = FetchMode.MIXED
        self.state = StatementState.PREPARED
        self.columns = None

    def bind_param(self, key, value, param_type=ParamType.STR, max_length=0, driver_options=None):
        try:
            self.parameters.bind(key, value, param_type, max_length, driver_options)
        except UnsupportedParameterType as e:
            raise e.set_sql(self.query)
        return True

    def unbind(self, key):
        self.parameters.unbind(key)

    def get_bound(self):
        return self.parameters.get_bound()

    def set_fetch_mode(self, mode):
        self.fetch_mode = FetchMode.from_value(mode)

    def execute(self, params=None):
        """
        Bind and run the statement.

        `params` are ad-hoc values, bound as strings in call order (or by key
        for a dict), used instead of the parameters bound with bind_param().
        An unconsumed result from a previous run is discarded.
        """
        if self.state in (StatementState.EXECUTED, StatementState.EXHAUSTED):
            self.close_cursor()

        if params is not None:
            parameters = ParameterSet.from_values(params).get_bound()
        else:
            parameters = self.parameters.get_bound()

        self._bind(parameters)
        self._execute()
        self.state = StatementState.EXECUTED
        return True

    def fetch(self, mode=None):
        if self.state is not StatementState.EXECUTED:
            return None

        mode = self.fetch_mode if mode is None else FetchMode.from_value(mode)
        if mode is FetchMode.COLUMN:
            return self.fetch_column()

        row = self._fetch(mode)
        if row is None:
            self.state = StatementState.EXHAUSTED
        return row

    def fetch_column(self, index=0):
        row = self.fetch(FetchMode.NUMERIC)
        if row is None:
            return None
        return row[index] if index < len(row) else None

    def fetch_all(self, mode=None):
        rows = []
        while True:
            row = self.fetch(mode)
            if row is None:
                return rows
            rows.append(row)

    def __iter__(self):
        while True:
            row = self.fetch()
            if row is None:
                return
            yield row

    def close_cursor(self):
        self._close()
        self.state = StatementState.CLOSED

    def row_count(self):
        raise NotImplementedError

    def error_code(self):
        return self.native.errno

    def error_info(self):
        return self.native.error

    def _bind(self, parameters):
        raise NotImplementedError

    def _execute(self):
        raise NotImplementedError

    def _fetch(self, mode):
        raise NotImplementedError

    def _close(self):
        raise NotImplementedError

    def _prepare(self, text):
        if not self.native.prepare(text):
            raise PrepareOrBindFailure(
                self.native.error, self.native.errno, text) from self.native.exception

    def _execution_failure(self):
        error = ExecutionFailure(self.native.error, self.native.errno, self.query)
        error.__cause__ = self.native.exception
        return error


class NativeShapedStatement(Statement):
    """Statement whose driver binds by name and shapes rows itself."""

    def __init__(self, native, query):
        super().__init__(native, query)
        _, self.mapping = map_placeholders(query)
        self._prepare(query)

    def _bind(self, parameters):
        NamedBinder(self.native, self.query, self.mapping).apply(parameters)

    def _execute(self):
        if not self.native.execute():
            raise self._execution_failure()
        self.columns = self.native.columns

    def _fetch(self, mode):
        row = self.native.fetch(mode)
        if row is False:
            raise self._execution_failure()
        return row

    def row_count(self):
        return self.native.row_count()

    def _close(self):
        self.native.close_cursor()


class EmulatedShapedStatement(Statement):
    """
    Statement over a positional-only driver.

    Named placeholders are rewritten to ``?`` before preparing. Column names
    are read once, after the first execution, and the output buffer is bound
    once and reused for every row of every later execution.
    """

    def __init__(self, native, query):
        super().__init__(native, query)
        self.prepared_query, self.mapping = map_placeholders(query)
        self._described = False
        self._outputs = None
        self._prepare(self.prepared_query)

    def _bind(self, parameters):
        PositionalBinder(self.native, self.mapping, self.query).apply(parameters)

    def _execute(self):
        if not self.native.execute():
            raise self._execution_failure()

        if not self._described:
            meta = self.native.result_metadata()
            self.columns = [column.name for column in meta] if meta else None
            self._described = True

        if self.columns is not None:
            self.native.store_result()
            if self._outputs is None:
                self._outputs = [None] * len(self.columns)
                if not self.native.bind_result(self._outputs):
                    raise self._execution_failure()

    def _fetch(self, mode):
        if self.columns is None:
            return None

        status = self.native.fetch()
        if status is None:
            return None
        if status is False:
            raise self._execution_failure()

        values = list(self._outputs)
        return shape_row(mode, self.columns, values)

    def row_count(self):
        if self.columns is None:
            return self.native.affected_rows
        return self.native.num_rows

    def _close(self):
        self.native.free_result()
