from .exceptions import UnsupportedParameterType
from .parameter import ParameterSet, ParamType


class Query:
    """
    SQL text plus the parameters bound to it.

    This is what a query builder hands to the database layer; a plain SQL
    string is wrapped in one by DatabasePrototype.set_query().
    """

    def __init__(self, sql=""):
        self.sql = sql
        self.parameters = ParameterSet()
        self.limit = 0
        self.offset = 0

    def set_query(self, sql):
        self.sql = str(sql)
        return self

    def bind_param(self, key, value, param_type=ParamType.STR, max_length=0, driver_options=None):
        try:
            self.parameters.bind(key, value, param_type, max_length, driver_options)
        except UnsupportedParameterType as e:
            raise e.set_sql(self.sql)
        return self

    def bind_array(self, data, param_type=ParamType.STR):
        try:
            self.parameters.bind_values(data, param_type)
        except UnsupportedParameterType as e:
            raise e.set_sql(self.sql)
        return self

    def unbind(self, key):
        self.parameters.unbind(key)
        return self

    def get_bound(self):
        return self.parameters.get_bound()

    def set_limit(self, limit=0, offset=0):
        self.limit = int(limit)
        self.offset = int(offset)
        return self

    def clear(self):
        self.sql = ""
        self.parameters.clear()
        self.limit = 0
        self.offset = 0
        return self

    def process_limit(self, sql, limit, offset=0):
        if limit > 0 and offset > 0:
            sql += f" LIMIT {limit} OFFSET {offset}"
        elif limit > 0:
            sql += f" LIMIT {limit}"
        return sql

    def __str__(self):
        return self.process_limit(self.sql, self.limit, self.offset)
