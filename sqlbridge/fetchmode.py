from enum import Enum
from types import SimpleNamespace


class FetchMode(Enum):
    """Shape a fetched row is returned in. Values follow the PDO FETCH_* numbers."""
    ASSOCIATIVE = 2
    NUMERIC = 3
    MIXED = 4
    STANDARD_OBJECT = 5
    COLUMN = 7

    @classmethod
    def from_value(cls, mode):
        if isinstance(mode, cls):
            return mode
        if isinstance(mode, str):
            found = _NAMES.get(mode.replace("_", "").lower())
            if found is not None:
                return found
        elif isinstance(mode, int):
            return cls(mode)
        raise ValueError(f"Unknown fetch mode '{mode}'")


_NAMES = {
    "associative": FetchMode.ASSOCIATIVE,
    "assoc": FetchMode.ASSOCIATIVE,
    "numeric": FetchMode.NUMERIC,
    "num": FetchMode.NUMERIC,
    "mixed": FetchMode.MIXED,
    "both": FetchMode.MIXED,
    "standardobject": FetchMode.STANDARD_OBJECT,
    "object": FetchMode.STANDARD_OBJECT,
    "column": FetchMode.COLUMN,
}


def shape_row(mode, names, values):
    """
    Build a row in the requested shape from column names and an ordered list
    of values.

    MIXED holds the numeric keys first, then the column names.
    """
    if mode is FetchMode.NUMERIC:
        return list(values)

    if mode is FetchMode.ASSOCIATIVE:
        return dict(zip(names, values))

    if mode is FetchMode.MIXED:
        row = dict(enumerate(values))
        row.update(zip(names, values))
        return row

    if mode is FetchMode.STANDARD_OBJECT:
        return SimpleNamespace(**dict(zip(names, values)))

    if mode is FetchMode.COLUMN:
        return values[0] if values else None

    raise ValueError(f"Unknown fetch type '{mode}'")
