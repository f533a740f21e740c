"""
Unit tests for the quote-aware SQL scanner.
No database required.
"""
import pytest

from sqlbridge.scanner import (
    count_unquoted,
    find_unquoted,
    map_placeholders,
    replace_prefix,
    replace_unquoted,
    scan_literals,
    split_sql,
)


# ---------------------------------------------------------------------------
# scan_literals
# ---------------------------------------------------------------------------

class TestScanLiterals:
    def test_spans_cover_whole_string(self):
        sql = "a 'b' c"
        assert list(scan_literals(sql)) == [(0, 2, False), (2, 5, True), (5, 7, False)]

    def test_no_quotes_is_one_span(self):
        assert list(scan_literals("SELECT 1")) == [(0, 8, False)]

    def test_nearest_quote_wins(self):
        # The double quote opens first, so the single quote inside is literal text
        sql = "x \"it's\" y"
        assert list(scan_literals(sql)) == [(0, 2, False), (2, 8, True), (8, 10, False)]

    def test_backslash_escaped_quote_does_not_close(self):
        sql = r"'it\'s' z"
        assert list(scan_literals(sql)) == [(0, 7, True), (7, 9, False)]

    def test_even_backslashes_do_not_escape(self):
        sql = r"'a\\' z"
        assert list(scan_literals(sql)) == [(0, 5, True), (5, 7, False)]

    def test_unterminated_quote_runs_to_end(self):
        sql = "SELECT 'abc"
        assert list(scan_literals(sql)) == [(0, 7, False), (7, 11, True)]

    def test_empty_string(self):
        assert list(scan_literals("")) == []


# ---------------------------------------------------------------------------
# find / count / replace outside literals
# ---------------------------------------------------------------------------

class TestUnquotedHelpers:
    def test_find_skips_quoted_occurrence(self):
        assert find_unquoted("SELECT '?' , ?", "?") == 13

    def test_find_returns_minus_one_when_only_quoted(self):
        assert find_unquoted("SELECT '?'", "?") == -1

    def test_find_empty_token(self):
        assert find_unquoted("SELECT 1", "") == -1

    def test_count_ignores_literals(self):
        assert count_unquoted("'?' ? \"?\" ?", "?") == 2

    def test_replace_leaves_literals_alone(self):
        assert replace_unquoted("a ? '?' ?", "?", "%s") == "a %s '?' %s"

    def test_replace_without_token_returns_input(self):
        sql = "SELECT 1"
        assert replace_unquoted(sql, "?", "%s") is sql


# ---------------------------------------------------------------------------
# replace_prefix
# ---------------------------------------------------------------------------

class TestReplacePrefix:
    def test_replaces_token_outside_literals(self):
        sql = "SELECT '#__' FROM #__users"
        assert replace_prefix(sql, "app_") == "SELECT '#__' FROM app_users"

    def test_every_unquoted_token_is_replaced(self):
        sql = "SELECT * FROM #__a JOIN #__b ON #__a.id = #__b.a_id"
        assert replace_prefix(sql, "x_") == "SELECT * FROM x_a JOIN x_b ON x_a.id = x_b.a_id"

    def test_double_quoted_literal_untouched(self):
        assert replace_prefix('SELECT "#__col" FROM #__t', "p_") == 'SELECT "#__col" FROM p_t'

    def test_escaped_quote_keeps_literal_open(self):
        sql = r"SELECT 'it\'s #__' FROM #__t"
        assert replace_prefix(sql, "p_") == r"SELECT 'it\'s #__' FROM p_t"

    def test_unterminated_literal_copied_verbatim(self):
        sql = "SELECT * FROM #__t WHERE a = 'abc #__"
        assert replace_prefix(sql, "p_") == "SELECT * FROM p_t WHERE a = 'abc #__"

    def test_idempotent(self):
        once = replace_prefix("SELECT * FROM #__users WHERE n = '#__'", "app_")
        assert replace_prefix(once, "app_") == once

    def test_empty_prefix(self):
        assert replace_prefix("SELECT * FROM #__users", "") == "SELECT * FROM users"

    def test_custom_token(self):
        assert replace_prefix("SELECT * FROM ~users", "p_", token="~") == "SELECT * FROM p_users"


# ---------------------------------------------------------------------------
# map_placeholders
# ---------------------------------------------------------------------------

class TestMapPlaceholders:
    def test_each_occurrence_gets_a_position(self):
        sql, mapping = map_placeholders("SELECT * FROM t WHERE a = :a AND b = :b OR c = :a")
        assert sql == "SELECT * FROM t WHERE a = ? AND b = ? OR c = ?"
        assert len(mapping) == 3
        assert mapping.positions("a") == [0, 2]
        assert mapping.positions(":b") == [1]
        assert mapping.names == ["a", "b"]
        assert mapping.name_at(2) == "a"

    def test_quoted_word_is_not_a_placeholder(self):
        sql, mapping = map_placeholders("SELECT ':notparam', :real")
        assert sql == "SELECT ':notparam', ?"
        assert mapping.names == ["real"]

    def test_time_literal_untouched(self):
        sql, mapping = map_placeholders("SELECT * FROM t WHERE at > '12:30'")
        assert sql == "SELECT * FROM t WHERE at > '12:30'"
        assert len(mapping) == 0

    def test_type_cast_is_not_a_placeholder(self):
        sql, mapping = map_placeholders("SELECT :val::int")
        assert sql == "SELECT ?::int"
        assert mapping.names == ["val"]

    def test_marker_count_matches_mapping(self):
        sql, mapping = map_placeholders("INSERT INTO t VALUES (:a, :b, :c, ':d')")
        assert count_unquoted(sql, "?") == len(mapping) == 3

    def test_query_without_placeholders_is_unchanged(self):
        sql = "SELECT 1"
        rewritten, mapping = map_placeholders(sql)
        assert rewritten is sql
        assert not mapping

    def test_callable_marker_receives_name(self):
        sql, _ = map_placeholders("a = :a AND b = :b", marker=lambda name: f"%({name})s")
        assert sql == "a = %(a)s AND b = %(b)s"

    def test_contains_and_iteration(self):
        _, mapping = map_placeholders("x = :x AND y = :y")
        assert "x" in mapping
        assert ":y" in mapping
        assert "z" not in mapping
        assert [p.name for p in mapping] == ["x", "y"]
        assert mapping.as_dict() == {"x": [0], "y": [1]}

    @pytest.mark.parametrize("sql", [
        "SELECT 'unterminated :a",
        "SELECT \"x\\\" :a",
    ])
    def test_placeholder_inside_unterminated_literal_is_kept(self, sql):
        rewritten, mapping = map_placeholders(sql)
        assert rewritten == sql
        assert len(mapping) == 0


# ---------------------------------------------------------------------------
# split_sql
# ---------------------------------------------------------------------------

class TestSplitSql:
    def test_splits_on_unquoted_semicolons(self):
        script = "CREATE TABLE t (v TEXT);\nINSERT INTO t VALUES ('a');\n"
        assert split_sql(script) == ["CREATE TABLE t (v TEXT);", "INSERT INTO t VALUES ('a');"]

    def test_semicolon_in_single_quotes(self):
        assert split_sql("INSERT INTO t VALUES ('a;b'); SELECT 1;") == [
            "INSERT INTO t VALUES ('a;b');",
            "SELECT 1;",
        ]

    def test_semicolon_in_double_quotes(self):
        assert split_sql('SELECT "x;y" FROM t; DELETE FROM t;') == [
            'SELECT "x;y" FROM t;',
            "DELETE FROM t;",
        ]

    def test_escaped_quote_keeps_literal_open(self):
        script = r"INSERT INTO t VALUES ('it\'s; fine'); SELECT 2;"
        assert split_sql(script) == [
            r"INSERT INTO t VALUES ('it\'s; fine');",
            "SELECT 2;",
        ]

    def test_even_backslashes_close_the_literal(self):
        script = r"SELECT 'a\\'; SELECT 3;"
        assert split_sql(script) == [r"SELECT 'a\\';", "SELECT 3;"]

    def test_trailing_statement_without_terminator(self):
        assert split_sql("SELECT 1; SELECT 2") == ["SELECT 1;", "SELECT 2"]

    def test_empty_statements_are_skipped(self):
        assert split_sql(" ;; SELECT 1;\n;  ") == ["SELECT 1;"]
        assert split_sql("") == []

    def test_unterminated_quote_stays_in_last_statement(self):
        assert split_sql("SELECT 1; SELECT 'a;b") == ["SELECT 1;", "SELECT 'a;b"]
