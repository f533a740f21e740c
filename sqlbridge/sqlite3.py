import logging
import sqlite3
from pathlib import Path

from ._prototype import DatabasePrototype, SQLITE
from .binder import NATIVE_BOOL, NATIVE_INT, NATIVE_LOB, coerce_lob, coerce_string
from .exceptions import ConnectionFailure, ExecutionFailure
from .fetchmode import shape_row
from .statement import NativeShapedStatement

logger = logging.getLogger(__name__)


def _to_sqlite(value, native_type):
    if value is None:
        return None
    if native_type == NATIVE_BOOL:
        return int(bool(value))
    if native_type == NATIVE_INT:
        return int(value)
    if native_type == NATIVE_LOB:
        return coerce_lob(value)
    return coerce_string(value)


class SQLiteNativeStatement:
    """
    Named-capable statement on a sqlite3 connection.

    Rows are read into memory right after execution, so the cursor is never
    left open between calls.
    """

    def __init__(self, conn):
        self.conn = conn
        self.query = None
        self.columns = None
        self.lastrowid = None
        self.rowcount = 0
        self.error = ""
        self.errno = 0
        self.exception = None
        self._named = {}
        self._positional = {}
        self._rows = []
        self._index = 0

    def _fail(self, message, errno=0, exception=None):
        self.error = message
        self.errno = errno
        self.exception = exception
        return False

    def prepare(self, text):
        self.query = text
        return True

    def clear_bindings(self):
        self._named = {}
        self._positional = {}

    def bind(self, key, value, native_type, max_length=None, driver_options=None):
        try:
            value = _to_sqlite(value, native_type)
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
            args = [value for _, value in sorted(self._positional.items())]

        try:
            cursor = self.conn.cursor()
            cursor.row_factory = sqlite3.Row
            try:
                cursor.execute(self.query, args)
                if cursor.description is not None:
                    self.columns = [column[0] for column in cursor.description]
                    self._rows = cursor.fetchall()
                    self.rowcount = len(self._rows)
                else:
                    self.columns = None
                    self.rowcount = max(cursor.rowcount, 0)
                self.lastrowid = cursor.lastrowid
            finally:
                cursor.close()
        except sqlite3.Error as e:
            return self._fail(str(e), getattr(e, "sqlite_errorcode", 0) or 0, e)
        return True

    def fetch(self, mode):
        if self._index >= len(self._rows):
            return None
        row = self._rows[self._index]
        self._index += 1
        return shape_row(mode, row.keys(), tuple(row))

    def row_count(self):
        return self.rowcount

    def close_cursor(self):
        self._rows = []
        self._index = 0


class SQLiteWrapper(DatabasePrototype):
    db_type = SQLITE
    name_quote = "`"
    null_date = "1970-01-01 00:00:00"

    def __init__(self, db_name, memory_mode=False, table_prefix="", log=False, log_params=False):
        super().__init__(table_prefix, log, log_params)
        self.memory_mode = memory_mode or db_name == ":memory:"
        self.db_name = ":memory:" if self.memory_mode else db_name

        if not self.memory_mode:
            # Auto-create parent directories for the database file
            Path(self.db_name).parent.mkdir(parents=True, exist_ok=True)

        self.connect()

    def _connect(self):
        try:
            conn = sqlite3.connect(self.db_name)
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise ConnectionFailure(f"Could not connect to SQLite: {e}") from e
        return conn

    def connected(self):
        if self.conn is None:
            return False
        try:
            self.conn.execute("SELECT 1").close()
        except sqlite3.Error:
            return False
        return True

    def _close_connection(self):
        try:
            self.conn.close()
        except sqlite3.Error as ex:
            logger.warning("Closing connection failed: %s", ex)

    def prepare_statement(self, sql):
        return NativeShapedStatement(SQLiteNativeStatement(self.conn), sql)

    def insert_id(self):
        self.connect()
        try:
            return self.conn.execute("SELECT last_insert_rowid()").fetchone()[0]
        except sqlite3.Error as e:
            raise ExecutionFailure(str(e), sql="SELECT last_insert_rowid()") from e

    def truncate_table(self, table):
        if not self.table_exists(table):
            return
        table = self._prefixed(table)
        self.execute(f"DELETE FROM {self.quote_name(table)}")
        # AUTOINCREMENT counters live in sqlite_sequence, which only exists once used
        if "sqlite_sequence" in self.get_table_list():
            self.execute("DELETE FROM sqlite_sequence WHERE name = :table", {"table": table})
        self.table_cache.invalidate(table)

    def _load_table_list(self):
        self.set_query("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name")
        return self.load_column()

    def _load_table_columns(self, table):
        self.set_query(f"PRAGMA table_info({self.quote_name(table)})")
        return self.load_object_list("name")

    def _load_table_keys(self, table):
        self.set_query(f"PRAGMA index_list({self.quote_name(table)})")
        indexes = self.load_assoc_list()

        keys = []
        for index in indexes:
            self.set_query(f"PRAGMA index_info({self.quote_name(index['name'])})")
            for column in self.load_assoc_list():
                keys.append({
                    "Table": table,
                    "Non_unique": 0 if index["unique"] else 1,
                    "Key_name": index["name"],
                    "Seq_in_index": column["seqno"] + 1,
                    "Column_name": column["name"],
                })
        return keys

    def _load_table_create(self, table):
        self.set_query("SELECT sql FROM sqlite_master WHERE type = 'table' AND name = :table", {"table": table})
        return self.load_result()

    def _load_collation(self):
        # Text compares byte by byte unless a column asks otherwise
        return "BINARY"
