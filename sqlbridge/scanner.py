"""
Quote-aware scanning of SQL text.

Everything here works on spans that lie outside quoted literals, so that a
table-prefix token or a ``:name`` inside ``'...'`` or ``"..."`` is never
touched. None of these functions raise on malformed input: an unterminated
quote makes the rest of the string one literal span, which is then copied
through unmodified.
"""
import re
from collections import namedtuple

PREFIX_TOKEN = "#__"
POSITIONAL_MARKER = "?"

# A colon followed by a name, but not the second colon of a `::type` cast.
PLACEHOLDER_PATTERN = re.compile(r"(?<!:):([A-Za-z0-9_]+)")

Placeholder = namedtuple("Placeholder", ["name", "position"])


def _next_quote(sql, start):
    """Return (index, quote_char) of the nearest ' or " at or after start."""
    single = sql.find("'", start)
    double = sql.find('"', start)
    if double != -1 and (single == -1 or double < single):
        return double, '"'
    return single, "'"


def _closing_quote(sql, opening, quote_char):
    """Index of the quote that closes the literal opened at `opening`, or -1."""
    j = opening + 1
    while True:
        k = sql.find(quote_char, j)
        if k == -1:
            return -1

        # An odd run of backslashes right before the quote escapes it.
        escaped = False
        back = k - 1
        while back > opening and sql[back] == "\\":
            back -= 1
            escaped = not escaped

        if not escaped:
            return k
        j = k + 1


def scan_literals(sql, start=0):
    """
    Split `sql` into consecutive half-open spans.

    Yields ``(begin, end, quoted)`` triples that together cover
    ``sql[start:]`` in order. `start` must not point inside a literal.
    """
    pos = start
    n = len(sql)
    while pos < n:
        opening, quote_char = _next_quote(sql, pos)
        if opening == -1:
            yield pos, n, False
            return

        if opening > pos:
            yield pos, opening, False

        closing = _closing_quote(sql, opening, quote_char)
        if closing == -1:
            # No end quote; the remainder is kept as it is.
            yield opening, n, True
            return

        yield opening, closing + 1, True
        pos = closing + 1


def find_unquoted(sql, token, start=0):
    """Index of the next occurrence of `token` outside any literal, or -1."""
    if not token:
        return -1
    for begin, end, quoted in scan_literals(sql, start):
        if quoted:
            continue
        index = sql.find(token, begin, end)
        if index != -1:
            return index
    return -1


def count_unquoted(sql, token):
    return sum(
        sql.count(token, begin, end)
        for begin, end, quoted in scan_literals(sql)
        if not quoted
    )


def replace_unquoted(sql, token, replacement):
    if not token or token not in sql:
        return sql

    parts = []
    for begin, end, quoted in scan_literals(sql):
        segment = sql[begin:end]
        parts.append(segment if quoted else segment.replace(token, replacement))
    return "".join(parts)


def replace_prefix(sql, prefix, token=PREFIX_TOKEN):
    """
    Replace every unquoted `token` (``#__`` by default) with the table prefix.

    >>> replace_prefix("SELECT '#__' FROM #__users", "app_")
    "SELECT '#__' FROM app_users"
    """
    return replace_unquoted(sql, token, prefix)


class PlaceholderMapping:
    """
    Ordered record of the named placeholders found in a query.

    Every occurrence gets its own position, so a name used three times owns
    three positions.
    """

    def __init__(self):
        self.occurrences = []
        self._positions = {}

    def add(self, name):
        position = len(self.occurrences)
        self.occurrences.append(Placeholder(name, position))
        self._positions.setdefault(name, []).append(position)
        return position

    def positions(self, name):
        if isinstance(name, str):
            name = name.lstrip(":")
        return list(self._positions.get(name, ()))

    @property
    def names(self):
        return list(self._positions)

    def name_at(self, position):
        return self.occurrences[position].name

    def as_dict(self):
        return {name: list(positions) for name, positions in self._positions.items()}

    def __contains__(self, name):
        return bool(self.positions(name))

    def __iter__(self):
        return iter(self.occurrences)

    def __len__(self):
        return len(self.occurrences)

    def __repr__(self):
        return f"PlaceholderMapping({self.as_dict()!r})"


def map_placeholders(sql, marker=POSITIONAL_MARKER):
    """
    Rewrite unquoted ``:name`` placeholders into positional markers.

    Returns ``(rewritten_sql, mapping)``. `marker` is either the marker text or
    a callable receiving the placeholder name. A query without placeholders
    comes back unchanged with an empty mapping.
    """
    mapping = PlaceholderMapping()
    if not PLACEHOLDER_PATTERN.search(sql):
        return sql, mapping

    def emit(match):
        name = match.group(1)
        mapping.add(name)
        return marker(name) if callable(marker) else marker

    parts = []
    for begin, end, quoted in scan_literals(sql):
        segment = sql[begin:end]
        parts.append(segment if quoted else PLACEHOLDER_PATTERN.sub(emit, segment))

    return "".join(parts), mapping


def split_sql(sql):
    """
    Split a script into its statements on unquoted ``;``.

    Each statement keeps its terminating ``;`` and is stripped of surrounding
    whitespace; empty statements are skipped. A trailing statement without
    a terminator is returned as well.

    >>> split_sql("INSERT INTO t VALUES ('a;b'); SELECT 1")
    ["INSERT INTO t VALUES ('a;b');", 'SELECT 1']
    """
    queries = []
    start = 0
    for begin, end, quoted in scan_literals(sql):
        if quoted:
            continue
        index = sql.find(";", begin, end)
        while index != -1:
            queries.append(sql[start:index + 1])
            start = index + 1
            index = sql.find(";", start, end)
    queries.append(sql[start:])

    queries = [query.strip() for query in queries]
    return [query for query in queries if query not in ("", ";")]
