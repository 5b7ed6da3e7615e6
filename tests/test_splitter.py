"""Tests for the SQL statement splitter."""
import pytest

from snapshot_restore.services.splitter import StatementSplitter, split_statements, stream_statements

DUMP = """-- MySQL dump
/*!40101 SET NAMES utf8 */;
DROP TABLE IF EXISTS `wp_posts`;
CREATE TABLE `wp_posts` (
  `ID` bigint(20) NOT NULL, -- primary key
  `post_title` text
);
INSERT INTO `wp_posts` VALUES (1,'semi; colon'),(2,'it\\'s'),(3,"dq; \\"x\\"");
# a hash comment; with a semicolon
/* block; comment */
DELIMITER ;;
CREATE TRIGGER `t1` BEFORE INSERT ON `wp_posts` FOR EACH ROW BEGIN
  SET NEW.post_title = 'a;b';
END ;;
DELIMITER ;
SELECT 1;
"""


def split(text, delimiter=";"):
    return list(split_statements(text, delimiter))


class TestSplitStatements:

    def test_simple_statements(self):
        assert split("SELECT 1; SELECT 2;") == ["SELECT 1", "SELECT 2"]

    def test_trailing_statement_without_delimiter(self):
        assert split("SELECT 1;\nSELECT 2") == ["SELECT 1", "SELECT 2"]

    def test_empty_input(self):
        assert split("") == []
        assert split("   \n\n  ") == []
        assert split(";;;") == []

    def test_delimiter_inside_single_quotes(self):
        assert split("INSERT INTO t VALUES ('a;b');") == ["INSERT INTO t VALUES ('a;b')"]

    def test_delimiter_inside_double_quotes_and_backticks(self):
        assert split('SELECT "x;y" FROM `a;b`;') == ['SELECT "x;y" FROM `a;b`']

    def test_escaped_quote_does_not_close_string(self):
        assert split("INSERT INTO t VALUES ('a\\';b');SELECT 2;") == [
            "INSERT INTO t VALUES ('a\\';b')",
            "SELECT 2",
        ]

    def test_escaped_backslash_before_quote_closes_string(self):
        assert split("SELECT 'a\\\\';SELECT 2;") == ["SELECT 'a\\\\'", "SELECT 2"]

    def test_doubled_quotes(self):
        assert split("SELECT 'it''s; fine';") == ["SELECT 'it''s; fine'"]

    def test_line_comment_kept_with_statement(self):
        assert split("-- leading; comment\nSELECT 1;") == ["-- leading; comment\nSELECT 1"]

    def test_hash_comment_hides_delimiter(self):
        assert split("# drop; this\nSELECT 1;") == ["# drop; this\nSELECT 1"]

    def test_block_comment_hides_delimiter(self):
        assert split("SELECT /* a; b */ 1;") == ["SELECT /* a; b */ 1"]

    def test_double_dash_needs_whitespace(self):
        assert split("SELECT 1--1;SELECT 2;") == ["SELECT 1--1", "SELECT 2"]

    def test_comment_only_statements_are_dropped(self):
        assert split("/* nothing */;\n-- nothing\n;SELECT 1;") == ["SELECT 1"]
        assert split("-- trailing comment only\n") == []

    def test_executable_comment_is_a_statement(self):
        assert split("/*!40101 SET NAMES utf8 */;") == ["/*!40101 SET NAMES utf8 */"]

    def test_delimiter_directive(self):
        sql = (
            "DELIMITER $$\n"
            "CREATE PROCEDURE p() BEGIN SELECT 1; SELECT 2; END$$\n"
            "DELIMITER ;\n"
            "CALL p();\n"
        )
        assert split(sql) == [
            "CREATE PROCEDURE p() BEGIN SELECT 1; SELECT 2; END",
            "CALL p()",
        ]

    def test_delimiter_directive_is_case_insensitive(self):
        assert split("delimiter //\nSELECT 1//\n") == ["SELECT 1"]

    def test_delimiter_word_inside_identifier_is_not_a_directive(self):
        assert split("SELECT MYDELIMITER FROM t;") == ["SELECT MYDELIMITER FROM t"]

    def test_delimiter_directive_without_token_is_ignored(self):
        assert split("DELIMITER \nSELECT 1;") == ["SELECT 1"]

    def test_unterminated_quote_runs_to_end(self):
        result = split("SELECT 'abc; SELECT 2;")
        assert len(result) == 1
        assert result[0].startswith("SELECT 'abc")

    def test_unterminated_block_comment_runs_to_end(self):
        assert split("SELECT 1 /* never closed; SELECT 2;") == ["SELECT 1 /* never closed; SELECT 2;"]

    def test_custom_initial_delimiter(self):
        assert split("SELECT 1; SELECT 2$$", delimiter="$$") == ["SELECT 1; SELECT 2"]

    def test_full_dump(self):
        statements = split(DUMP)
        assert statements[0] == "-- MySQL dump\n/*!40101 SET NAMES utf8 */"
        assert statements[1] == "DROP TABLE IF EXISTS `wp_posts`"
        assert statements[2].startswith("CREATE TABLE `wp_posts`")
        assert "-- primary key" in statements[2]
        assert statements[3].startswith("INSERT INTO `wp_posts`")
        assert statements[3].endswith('(3,"dq; \\"x\\"")')
        assert statements[4].startswith("# a hash comment; with a semicolon\n/* block; comment */\n")
        assert statements[4].endswith("END")
        assert "SET NEW.post_title = 'a;b';" in statements[4]
        assert statements[5] == "SELECT 1"
        assert len(statements) == 6

    def test_statements_are_yielded_lazily(self):
        statements = split_statements("SELECT 1; SELECT 'unterminated")
        assert next(statements) == "SELECT 1"
        assert next(statements) == "SELECT 'unterminated"
        with pytest.raises(StopIteration):
            next(statements)

    def test_empty_delimiter_is_rejected(self):
        with pytest.raises(ValueError):
            StatementSplitter("")


class TestStreaming:

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 16, 64, 4096])
    def test_feeding_in_pieces_matches_whole_buffer(self, size):
        splitter = StatementSplitter()
        streamed = []
        for start in range(0, len(DUMP), size):
            streamed.extend(splitter.feed(DUMP[start:start + size]))
        streamed.extend(splitter.close())
        assert streamed == split(DUMP)

    def test_stream_over_blocks_matches_whole_buffer(self):
        blocks = [DUMP[start:start + 5] for start in range(0, len(DUMP), 5)]
        assert list(stream_statements(blocks)) == split(DUMP)

    def test_feed_returns_only_complete_statements(self):
        splitter = StatementSplitter()
        assert splitter.feed("SELECT 1; SEL") == ["SELECT 1"]
        assert splitter.feed("ECT 2") == []
        assert splitter.close() == ["SELECT 2"]

    def test_quote_spanning_feeds(self):
        splitter = StatementSplitter()
        assert splitter.feed("INSERT INTO t VALUES ('a;") == []
        assert splitter.feed("b');SELECT 2;") == ["INSERT INTO t VALUES ('a;b')", "SELECT 2"]
        assert splitter.close() == []

    def test_delimiter_survives_between_feeds(self):
        splitter = StatementSplitter()
        assert splitter.feed("DELIMITER $$\n") == []
        assert splitter.delimiter == "$$"
        assert splitter.feed("SELECT 1; SELECT 2$$") == ["SELECT 1; SELECT 2"]

    def test_close_resets_delimiter(self):
        splitter = StatementSplitter()
        splitter.feed("DELIMITER $$\nSELECT 1$$")
        splitter.close()
        assert splitter.delimiter == ";"
        assert splitter.feed("SELECT 2;") == ["SELECT 2"]
