import logging

import psycopg2
import psycopg2.extensions
import psycopg2.extras

from ._prototype import DatabasePrototype, NATIVE_PLACEHOLDER, POSTGRESQL
from .binder import NATIVE_BOOL, NATIVE_INT, NATIVE_LOB, coerce_lob, coerce_string
from .exceptions import ConnectionFailure, ExecutionFailure
from .fetchmode import shape_row
from .scanner import POSITIONAL_MARKER, map_placeholders, replace_unquoted
from .statement import NativeShapedStatement

logger = logging.getLogger(__name__)


def _pyformat(name):
    return f"%({name})s"


def _to_psycopg(value, native_type):
    if value is None:
        return None
    if native_type == NATIVE_BOOL:
        return bool(value)
    if native_type == NATIVE_INT:
        return int(value)
    if native_type == NATIVE_LOB:
        return psycopg2.Binary(coerce_lob(value))
    return coerce_string(value)


class PostgreSQLNativeStatement:
    """
    Named-capable statement on a psycopg2 connection.

    ``:name`` and ``?`` placeholders are translated to psycopg2's pyformat
    and format markers when the statement is prepared.
    """

    def __init__(self, conn):
        self.conn = conn
        self.query = None
        self.plain_query = None
        self.cursor = None
        self.columns = None
        self.rowcount = 0
        self.error = ""
        self.errno = 0
        self.exception = None
        self._named = {}
        self._positional = {}

    def _fail(self, message, errno=0, exception=None):
        self.error = message
        self.errno = errno
        self.exception = exception
        return False

    def _fail_from(self, e):
        return self._fail(str(e).strip(), getattr(e, "pgcode", None) or 0, e)

    def prepare(self, text):
        self.plain_query = text
        # psycopg2 interpolates with the % operator, but only when given arguments
        text = text.replace("%", "%%")
        text, _ = map_placeholders(text, marker=_pyformat)
        self.query = replace_unquoted(text, POSITIONAL_MARKER, NATIVE_PLACEHOLDER[POSTGRESQL])
        return True

    def clear_bindings(self):
        self._named = {}
        self._positional = {}

    def bind(self, key, value, native_type, max_length=None, driver_options=None):
        try:
            value = _to_psycopg(value, native_type)
        except (TypeError, ValueError) as e:
            return self._fail(f"Cannot bind {key!r} as {native_type}: {e}", 0, e)

        if isinstance(key, int):
            if self._named:
                return self._fail("Mixed named and positional parameters")
            self._positional[key] = value
        else:
            if self._positional:
                return self._fail("Mixed named and positional parameters")
            self._named[key] = value
        return True

    def execute(self):
        self.close_cursor()
        if self._named:
            args = dict(self._named)
        else:
            args = tuple(value for _, value in sorted(self._positional.items()))

        try:
            self.cursor = self.conn.cursor(cursor_factory=psycopg2.extras.DictCursor)
            if args:
                self.cursor.execute(self.query, args)
            else:
                self.cursor.execute(self.plain_query)
        except psycopg2.Error as e:
            return self._fail_from(e)
        except (TypeError, IndexError) as e:
            # Argument count does not match the markers
            return self._fail(str(e), 0, e)

        description = self.cursor.description
        self.columns = [column[0] for column in description] if description else None
        self.rowcount = max(self.cursor.rowcount, 0)
        return True

    def fetch(self, mode):
        if self.cursor is None or self.columns is None:
            return None
        try:
            row = self.cursor.fetchone()
        except psycopg2.Error as e:
            return self._fail_from(e)
        if row is None:
            return None
        return shape_row(mode, self.columns, list(row))

    def row_count(self):
        return self.rowcount

    def close_cursor(self):
        if self.cursor is None:
            return
        try:
            self.cursor.close()
        except psycopg2.Error as ex:
            logger.warning("Closing cursor failed: %s", ex)
        finally:
            self.cursor = None


class PostgreSQLWrapper(DatabasePrototype):
    db_type = POSTGRESQL
    name_quote = '"'
    null_date = "1970-01-01 00:00:00"

    def __init__(self, host, user, password, database, port=5432, log=False, table_prefix="",
                 log_params=False, **connect_options):
        super().__init__(table_prefix, log, log_params)
        self.host = host
        self.user = user
        self.password = password
        self.database = database
        self.port = port
        self.connect_options = connect_options

        self.connect()

    def _connect(self):
        try:
            conn = psycopg2.connect(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
                **self.connect_options
            )
        except psycopg2.Error as e:
            raise ConnectionFailure(f"Could not connect to PostgreSQL: {e}".strip()) from e
        conn.autocommit = False
        return conn

    def connected(self):
        if self.conn is None or self.conn.closed:
            return False

        status = self.conn.get_transaction_status()
        if status == psycopg2.extensions.TRANSACTION_STATUS_UNKNOWN:
            return False
        if status != psycopg2.extensions.TRANSACTION_STATUS_IDLE:
            # An open or aborted transaction still has a live session behind it
            return True

        try:
            with self.conn.cursor() as cursor:
                cursor.execute("SELECT 1")
            self.conn.rollback()
        except psycopg2.Error:
            return False
        return True

    def _close_connection(self):
        try:
            self.conn.close()
        except psycopg2.Error as ex:
            logger.warning("Closing connection failed: %s", ex)

    def prepare_statement(self, sql):
        return NativeShapedStatement(PostgreSQLNativeStatement(self.conn), sql)

    def insert_id(self):
        self.connect()
        try:
            with self.conn.cursor() as cursor:
                cursor.execute("SELECT lastval()")
                return cursor.fetchone()[0]
        except psycopg2.Error as e:
            raise ExecutionFailure(str(e).strip(), sql="SELECT lastval()") from e

    def escape(self, text, extra=False):
        text = str(text).replace("\\", "\\\\").replace("'", "''")
        if extra:
            text = text.replace("%", "\\%").replace("_", "\\_")
        return text

    def _truncate_table_sql(self, table):
        return [f"TRUNCATE TABLE {self.quote_name(table)} RESTART IDENTITY"]

    def _load_table_list(self):
        self.set_query(
            "SELECT tablename FROM pg_catalog.pg_tables"
            " WHERE schemaname NOT IN ('pg_catalog', 'information_schema')"
            " ORDER BY tablename"
        )
        return self.load_column()

    def _load_table_columns(self, table):
        self.set_query(
            'SELECT column_name AS "Field", data_type AS "Type",'
            ' is_nullable AS "Null", column_default AS "Default"'
            " FROM information_schema.columns"
            " WHERE table_name = :table"
            " ORDER BY ordinal_position",
            {"table": table},
        )
        return self.load_object_list("Field")

    def _load_table_keys(self, table):
        self.set_query(
            'SELECT t.relname AS "Table",'
            ' CASE WHEN ix.indisunique THEN 0 ELSE 1 END AS "Non_unique",'
            ' i.relname AS "Key_name", a.attname AS "Column_name"'
            " FROM pg_class t"
            " JOIN pg_index ix ON t.oid = ix.indrelid"
            " JOIN pg_class i ON i.oid = ix.indexrelid"
            " JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(ix.indkey)"
            " WHERE t.relkind = 'r' AND t.relname = :table"
            " ORDER BY i.relname, a.attnum",
            {"table": table},
        )
        return self.load_assoc_list()

    def _load_table_create(self, table):
        # No server-side equivalent of SHOW CREATE TABLE
        return None

    def _load_collation(self):
        self.set_query("SELECT datcollate FROM pg_database WHERE datname = current_database()")
        return self.load_result()
