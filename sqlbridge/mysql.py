import logging
import re

import pymysql
from pymysql.cursors import Cursor

from ._prototype import DatabasePrototype, MYSQL, NATIVE_PLACEHOLDER
from .binder import coerce_lob, coerce_string
from .exceptions import ConnectionFailure
from .scanner import POSITIONAL_MARKER, count_unquoted, replace_unquoted
from .statement import Column, EmulatedShapedStatement

logger = logging.getLogger(__name__)

# Client error numbers, as reported by libmysqlclient.
CR_SERVER_GONE_ERROR = 2006
CR_PARAMS_NOT_BOUND = 2031

TYPE_CODES = "idsb"


def _error_details(e):
    code = e.args[0] if e.args and isinstance(e.args[0], int) else 0
    message = e.args[1] if len(e.args) > 1 else str(e)
    return message, code


class MySqlNativeStatement:
    """
    Positional-only prepared statement on a pymysql connection.

    It follows the mysqli statement protocol: all values are bound in one
    bind_all() call, and fetch() writes each row into the output list given
    to bind_result() instead of returning it.
    """

    def __init__(self, conn):
        self.conn = conn
        self.query = None
        self.param_count = 0
        self.cursor = None
        self.affected_rows = 0
        self.num_rows = 0
        self.insert_id = 0
        self.error = ""
        self.errno = 0
        self.exception = None
        self._args = ()
        self._outputs = None

    def _fail(self, message, errno=0, exception=None):
        self.error = message
        self.errno = errno
        self.exception = exception
        return False

    def prepare(self, text):
        self.param_count = count_unquoted(text, POSITIONAL_MARKER)
        # pymysql interpolates with the % operator
        text = text.replace("%", "%%")
        self.query = replace_unquoted(text, POSITIONAL_MARKER, NATIVE_PLACEHOLDER[MYSQL])
        return True

    def bind_all(self, type_codes, *values):
        if len(type_codes) != len(values):
            return self._fail(
                "Number of elements in type definition string doesn't match number of bind variables")
        if len(values) != self.param_count:
            return self._fail(
                "Number of variables doesn't match number of parameters in prepared statement",
                CR_PARAMS_NOT_BOUND)

        args = []
        for code, value in zip(type_codes, values):
            if code not in TYPE_CODES:
                return self._fail(f"Undefined fieldtype {code} (parameter {len(args) + 1})")
            try:
                args.append(self._convert(code, value))
            except (TypeError, ValueError) as e:
                return self._fail(f"Cannot bind parameter {len(args) + 1} as '{code}': {e}", 0, e)

        self._args = tuple(args)
        return True

    @staticmethod
    def _convert(code, value):
        if value is None:
            return None
        if code == "i":
            return int(value)
        if code == "d":
            return float(value)
        if code == "b":
            return coerce_lob(value)
        return coerce_string(value)

    def execute(self):
        self.free_result()
        if len(self._args) != self.param_count:
            return self._fail("No data supplied for parameters in prepared statement", CR_PARAMS_NOT_BOUND)

        try:
            self.cursor = self.conn.cursor(Cursor)
            self.affected_rows = self.cursor.execute(self.query, self._args)
        except pymysql.MySQLError as e:
            message, code = _error_details(e)
            return self._fail(message, code, e)

        self.insert_id = self.cursor.lastrowid
        return True

    def result_metadata(self):
        if self.cursor is None or self.cursor.description is None:
            return None
        return [Column(description[0]) for description in self.cursor.description]

    def store_result(self):
        # The default cursor has already buffered the whole result
        self.num_rows = self.cursor.rowcount if self.cursor is not None else 0

    def bind_result(self, outputs):
        self._outputs = outputs
        return True

    def fetch(self):
        if self.cursor is None:
            return None

        row = self.cursor.fetchone()
        if row is None:
            return None
        if self._outputs is None or len(self._outputs) != len(row):
            return self._fail("Number of bind variables doesn't match number of fields in prepared statement")

        for i, value in enumerate(row):
            self._outputs[i] = value
        return True

    def free_result(self):
        if self.cursor is None:
            return
        try:
            self.cursor.close()
        except pymysql.MySQLError as ex:
            logger.warning("Closing cursor failed: %s", ex)
        finally:
            self.cursor = None


class MySqlWrapper(DatabasePrototype):
    db_type = MYSQL
    name_quote = "`"
    null_date = "1000-01-01 00:00:00"

    def __init__(self, host, user, password, db, port=3306, log=False, table_prefix="",
                 log_params=False, charset="utf8mb4", **connect_options):
        super().__init__(table_prefix, log, log_params)
        self.host = host
        self.user = user
        self.password = password
        self.db = db
        self.port = port
        self.charset = charset
        self.connect_options = connect_options

        self.connect()

    def _connect(self):
        try:
            return pymysql.connect(
                host=self.host,
                user=self.user,
                password=self.password,
                db=self.db,
                port=self.port,
                charset=self.charset,
                **self.connect_options
            )
        except pymysql.MySQLError as e:
            message, code = _error_details(e)
            raise ConnectionFailure(f"Could not connect to MySQL: {message}", code) from e

    def connected(self):
        if self.conn is None:
            return False
        try:
            self.conn.ping(reconnect=False)
        except pymysql.MySQLError:
            return False
        return True

    def _close_connection(self):
        try:
            self.conn.close()
        except pymysql.MySQLError as ex:
            logger.warning("Closing connection failed: %s", ex)

    def _begin(self):
        self.conn.begin()

    def prepare_statement(self, sql):
        return EmulatedShapedStatement(MySqlNativeStatement(self.conn), sql)

    def insert_id(self):
        return self.conn.insert_id() if self.conn is not None else 0

    def escape(self, text, extra=False):
        self.connect()
        text = self.conn.escape_string(str(text))
        if extra:
            text = text.replace("%", "\\%").replace("_", "\\_")
        return text

    def lock_table(self, table):
        self.execute(f"LOCK TABLES {self.quote_name(self._prefixed(table))} WRITE")

    def unlock_tables(self):
        self.execute("UNLOCK TABLES")

    def _rename_table_sql(self, old_table, new_table):
        return f"RENAME TABLE {self.quote_name(old_table)} TO {self.quote_name(new_table)}"

    def _load_table_list(self):
        self.set_query("SHOW TABLES")
        return self.load_column()

    def _load_table_columns(self, table):
        self.set_query(f"SHOW FULL COLUMNS FROM {self.quote_name(table)}")
        columns = self.load_object_list("Field")
        for column in columns.values():
            # int(11) unsigned -> int
            column.Type = re.sub(r"\(.*$", "", column.Type)
        return columns

    def _load_table_keys(self, table):
        self.set_query(f"SHOW KEYS FROM {self.quote_name(table)}")
        return self.load_assoc_list()

    def _load_table_create(self, table):
        self.set_query(f"SHOW CREATE TABLE {self.quote_name(table)}")
        row = self.load_row()
        return row[1] if row else None

    def _load_collation(self):
        self.set_query("SELECT @@collation_database")
        return self.load_result()
