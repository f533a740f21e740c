import logging

from .exceptions import DatabaseError, ExecutionFailure, QueryError
from .fetchmode import FetchMode
from .query import Query
from .scanner import PREFIX_TOKEN, replace_prefix
from .tablecache import TableCache

logger = logging.getLogger(__name__)

MYSQL = "mysql"
SQLITE = "sqlite3"
POSTGRESQL = "postgresql"

# Marker that replaces `?` for drivers that interpolate with `%`. SQLite
# takes `?` and `:name` as they are.
NATIVE_PLACEHOLDER = {
    MYSQL: "%s",
    POSTGRESQL: "%s",
}


class DatabasePrototype:
    """
    Common part of the driver wrappers.

    A wrapper owns one native connection and the statement prepared for the
    current query. Queries go through set_query() (prefix substitution and
    prepare) and execute() (bind and run); the load_* helpers execute the
    current query and return its rows in the wanted shape.
    """
    db_type = ""
    name_quote = '"'
    null_date = "1970-01-01 00:00:00"

    def __init__(self, table_prefix="", log=False, log_params=False):
        self.table_prefix = table_prefix or ""
        self.log_print = log
        self.log_params = log_params
        self.conn = None
        self.sql = None
        self.statement = None
        self.last_query = ""
        self.limit = 0
        self.offset = 0
        self.count = 0
        self.in_transaction = False
        self.table_cache = TableCache()

    def log(self, msg):
        if self.log_print:
            logger.info(msg)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(self):
        if self.conn is None:
            self.conn = self._connect()

    def connected(self):
        raise NotImplementedError

    def disconnect(self):
        self.statement = None
        self.in_transaction = False
        if self.conn is not None:
            try:
                self._close_connection()
            finally:
                self.conn = None

    def reconnect(self):
        self.disconnect()
        self.connect()

    def close(self):
        self.disconnect()

    def _connect(self):
        raise NotImplementedError

    def _close_connection(self):
        self.conn.close()

    def prepare_statement(self, sql):
        raise NotImplementedError

    def insert_id(self):
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def get_query(self, new=False):
        if new:
            return Query()
        return self.sql

    def set_query(self, query, params=None, offset=0, limit=0):
        self.connect()
        self.free_result()

        if isinstance(query, str):
            query = Query(query)
        if params is not None:
            query.bind_array(params)

        if limit == 0 and query.limit > 0:
            limit = query.limit
        if offset == 0 and query.offset > 0:
            offset = query.offset
        query.set_limit(limit, offset)

        sql = self.replace_prefix(str(query))
        self.statement = self.prepare_statement(sql)

        self.sql = query
        self.last_query = sql
        self.limit = max(0, limit)
        self.offset = max(0, offset)
        return self

    def replace_prefix(self, sql):
        return replace_prefix(sql, self.table_prefix)

    def execute(self, query=None, params=None, commit=True):
        """
        Run the current query, or set `query` first when it is given.

        Returns the statement's row count: affected rows for a statement
        without a result set, result rows otherwise.
        """
        if query is not None:
            self.set_query(query, params)
        elif params is not None and self.sql is not None:
            self.sql.bind_array(params)

        if self.statement is None:
            raise QueryError("No query set")

        self.connect()
        return self._execute(commit, retry=1)

    def _execute(self, commit, retry):
        self.count += 1

        self.statement.parameters.clear()
        for param in self.sql.get_bound():
            self.statement.bind_param(
                param.key, param.value, param.param_type, param.max_length, param.driver_options)

        self.log(self.last_query)
        if self.log_params:
            self.log({param.key: param.value for param in self.sql.get_bound()})

        try:
            self.statement.execute()
        except ExecutionFailure as e:
            logger.error("Error executing query: %s", e)
            logger.error("Last query: %s", self.last_query)
            if not self.in_transaction:
                self._rollback_quietly()

            # Only a connection found dead by an independent probe is retried.
            if retry > 0 and not self.in_transaction and not self.connected():
                logger.warning("Connection lost. Reconnecting and retrying query...")
                try:
                    self.reconnect()
                    self.statement = self.prepare_statement(self.last_query)
                except DatabaseError:
                    raise e
                return self._execute(commit, retry - 1)
            raise

        if commit and not self.in_transaction:
            self.commit()
        return self.statement.row_count()

    def _rollback_quietly(self):
        try:
            self.rollback()
        except Exception as ex:
            logger.warning("Rollback failed: %s", ex)

    def free_result(self):
        if self.statement is not None:
            self.statement.close_cursor()

    # ------------------------------------------------------------------
    # Loading results
    # ------------------------------------------------------------------

    def _load_one(self, mode):
        self.execute()
        row = self.statement.fetch(mode)
        self.free_result()
        return row

    def _load_all(self, mode):
        self.execute()
        rows = self.statement.fetch_all(mode)
        self.free_result()
        return rows

    def load_assoc(self):
        return self._load_one(FetchMode.ASSOCIATIVE)

    def load_row(self):
        return self._load_one(FetchMode.NUMERIC)

    def load_column(self, column=0):
        return [row[column] for row in self._load_all(FetchMode.MIXED)]

    def load_result(self):
        row = self._load_one(FetchMode.NUMERIC)
        if not row:
            return None
        return row[0]

    def load_object(self, factory=None):
        if factory is None:
            return self._load_one(FetchMode.STANDARD_OBJECT)
        row = self._load_one(FetchMode.ASSOCIATIVE)
        return None if row is None else factory(**row)

    def load_assoc_list(self, key="", column=""):
        rows = self._load_all(FetchMode.ASSOCIATIVE)
        if not key:
            return [row.get(column, row) if column else row for row in rows]

        results = {}
        for row in rows:
            results[row[key]] = row.get(column, row) if column else row
        return results

    def load_row_list(self, key=None):
        rows = self._load_all(FetchMode.NUMERIC)
        if key is None:
            return rows
        return {row[key]: row for row in rows}

    def load_object_list(self, key="", factory=None):
        if factory is None:
            rows = self._load_all(FetchMode.STANDARD_OBJECT)
        else:
            rows = [factory(**row) for row in self._load_all(FetchMode.ASSOCIATIVE)]
        if not key:
            return rows
        return {getattr(row, key): row for row in rows}

    def fetch_one(self, query, params=None):
        self.set_query(query, params)
        return self.load_assoc()

    def fetch_all(self, query, params=None):
        self.set_query(query, params)
        return self.load_assoc_list()

    def get_num_rows(self):
        if self.statement is not None:
            return self.statement.row_count()
        return 0

    def get_affected_rows(self):
        if self.statement is not None:
            return self.statement.row_count()
        return 0

    def record_exists(self, table, properties, select_field="id"):
        if not properties:
            return False

        query = Query()
        where = []
        for i, (field, value) in enumerate(properties.items()):
            where.append(f"{self.quote_name(field)} = :p{i}")
            query.bind_param(f"p{i}", value)
        query.set_query(
            f"SELECT {self.quote_name(select_field)} FROM {table} WHERE " + " AND ".join(where))

        self.set_query(query)
        value = self.load_result()
        try:
            return int(value or 0) > 0
        except (TypeError, ValueError):
            return value is not None

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def commit(self):
        if self.conn is not None:
            self.conn.commit()

    def rollback(self):
        if self.conn is not None:
            self.conn.rollback()

    def transaction_start(self):
        self.connect()
        self._begin()
        self.in_transaction = True

    def transaction_commit(self):
        try:
            self.commit()
        finally:
            self.in_transaction = False

    def transaction_rollback(self):
        try:
            self.rollback()
        finally:
            self.in_transaction = False

    def _begin(self):
        # Drivers open a transaction implicitly on the first statement.
        pass

    def begin_transaction(self):
        """Returns a transaction context manager on this wrapper's connection."""
        return Transaction(self)

    # ------------------------------------------------------------------
    # Sanitizing
    # ------------------------------------------------------------------

    def escape(self, text, extra=False):
        text = str(text).replace("'", "''")
        if extra:
            text = text.replace("%", "\\%").replace("_", "\\_")
        return text

    def quote(self, text, escape=True):
        if isinstance(text, bool):
            return "1" if text else "0"
        if isinstance(text, int):
            return str(text)

        text = str(text)
        if text.isdigit() and not text.startswith("0"):
            return text

        if escape:
            text = self.escape(text)
        return f"'{text}'"

    def values_to_string(self, values):
        return ", ".join(self.quote(value) for value in values)

    def quote_name(self, name, alias=None):
        quoted = self._quote_name_parts(name.split("."))
        if alias:
            quoted += " AS " + self._quote_name_parts([alias])
        return quoted

    def _quote_name_parts(self, parts):
        q = self.name_quote
        return ".".join(f"{q}{part}{q}" for part in parts if part is not None)

    def get_null_date(self, datetime=True):
        return self.null_date if datetime else self.null_date[:10]

    def is_null_date(self, value):
        if value is None:
            return True
        value = str(value)
        return value == "" or value[:10] == self.null_date[:10]

    # ------------------------------------------------------------------
    # Table introspection
    # ------------------------------------------------------------------

    def _prefixed(self, table):
        return table.replace(PREFIX_TOKEN, self.table_prefix)

    def get_table_list(self):
        return list(self._load_table_list())

    def table_exists(self, table):
        return self._prefixed(table) in self.get_table_list()

    def get_table_columns(self, table):
        return self.table_cache.columns(self._prefixed(table), self._load_table_columns)

    def get_table_keys(self, table):
        return self.table_cache.keys(self._prefixed(table), self._load_table_keys)

    def get_table_create(self, tables):
        """
        Map each table name, as given, to its CREATE TABLE statement.

        Tables the server has no statement for are left out.
        """
        if isinstance(tables, str):
            tables = [tables]
        results = {}
        for table in tables:
            sql = self._load_table_create(self._prefixed(table))
            if sql:
                results[table] = sql
        return results

    def get_collation(self):
        return self._load_collation()

    def drop_table(self, table):
        if not self.table_exists(table):
            return
        table = self._prefixed(table)
        self.execute(f"DROP TABLE {self.quote_name(table)}")
        self.table_cache.invalidate(table)

    def rename_table(self, old_table, new_table):
        if not self.table_exists(old_table) or self.table_exists(new_table):
            return
        old_table = self._prefixed(old_table)
        new_table = self._prefixed(new_table)
        self.execute(self._rename_table_sql(old_table, new_table))
        self.table_cache.invalidate(old_table)
        self.table_cache.invalidate(new_table)

    def truncate_table(self, table):
        if not self.table_exists(table):
            return
        table = self._prefixed(table)
        for sql in self._truncate_table_sql(table):
            self.execute(sql)
        self.table_cache.invalidate(table)

    def _rename_table_sql(self, old_table, new_table):
        return f"ALTER TABLE {self.quote_name(old_table)} RENAME TO {self.quote_name(new_table)}"

    def _truncate_table_sql(self, table):
        return [f"TRUNCATE TABLE {self.quote_name(table)}"]

    def _load_table_list(self):
        raise NotImplementedError

    def _load_table_columns(self, table):
        raise NotImplementedError

    def _load_table_keys(self, table):
        raise NotImplementedError

    def _load_table_create(self, table):
        raise NotImplementedError

    def _load_collation(self):
        raise NotImplementedError


class Transaction:
    def __init__(self, wrapper: DatabasePrototype):
        self.wrapper = wrapper
        wrapper.transaction_start()

    def execute(self, query, params=None):
        return self.wrapper.execute(query, params, commit=False)

    def fetchall(self):
        if self.wrapper.statement is None:
            return []
        return self.wrapper.statement.fetch_all(FetchMode.ASSOCIATIVE)

    def fetchone(self):
        if self.wrapper.statement is None:
            return None
        return self.wrapper.statement.fetch(FetchMode.ASSOCIATIVE)

    def commit(self):
        self.wrapper.transaction_commit()

    def rollback(self):
        self.wrapper.transaction_rollback()

    def close(self):
        self.wrapper.free_result()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, traceback):
        # Rollback on exception, commit otherwise
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()
