class TableCache:
    """
    Column and key introspection results of one database instance.

    Table names are stored with the prefix already applied. Statements that
    change a table's schema must call invalidate() for it.
    """

    def __init__(self):
        self._columns = {}
        self._keys = {}

    def columns(self, table, loader):
        if table not in self._columns:
            self._columns[table] = loader(table)
        return self._columns[table]

    def keys(self, table, loader):
        if table not in self._keys:
            self._keys[table] = loader(table)
        return self._keys[table]

    def invalidate(self, table=None):
        """Forget one table, or everything when table is None."""
        if table is None:
            self._columns.clear()
            self._keys.clear()
        else:
            self._columns.pop(table, None)
            self._keys.pop(table, None)

    def __contains__(self, table):
        return table in self._columns or table in self._keys
