"""Splits SQL dump text into individually executable statements.

The scanner understands just enough of the MySQL client syntax to find
statement boundaries: quoted strings and identifiers, the three comment
styles and ``DELIMITER`` directives. It is not a SQL parser.

Comment text is kept inside the statement it belongs to, since stored
routine bodies may depend on it. Statements made only of whitespace or
plain comments are dropped. MySQL executable comments (``/*! ... */``)
count as statement text.

Input can be given in one piece (``split_statements``) or incrementally
(``StatementSplitter.feed`` / ``close``, or ``stream_statements`` over a
sequence of blocks); both produce the same statements.
"""
import re
from typing import Iterable, Iterator, List, Optional

from ..core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DELIMITER = ";"
DELIMITER_KEYWORD = "DELIMITER "

# Quote characters and comment openers; "--" only counts when whitespace follows
_SPECIAL_RX = re.compile(r"['\"`#]|--(?=\s|\Z)|/\*")
_KEYWORD_RX = re.compile(r"(?<![A-Za-z0-9_])DELIMITER ", re.IGNORECASE)
_CODE_RX = re.compile(r"\S")

_QUOTES = ("'", '"', "`")


class StatementSplitter:
    """Incremental statement splitter.

    Only complete statements are returned by ``feed``; whatever follows the
    last boundary is kept until more data arrives or ``close`` flushes it.
    The active delimiter survives between ``feed`` calls and is reset to the
    default once the input is closed.
    """

    def __init__(self, delimiter: str = DEFAULT_DELIMITER):
        if not delimiter:
            raise ValueError("Statement delimiter must not be empty")
        self._default_delimiter = delimiter
        self.reset()

    def reset(self) -> None:
        """Forget buffered text and restore the default delimiter."""
        self.delimiter = self._default_delimiter
        self._buffer = ""
        self._scan_pos = 0  # Offset into _buffer already scanned
        self._has_code = False  # Current statement holds more than comments
        self._carried = ""  # Statement text seen before a DELIMITER line

    def feed(self, data: str) -> List[str]:
        """Add data and return the statements it completes."""
        self._buffer += data
        return list(self._scan(finished=False))

    def close(self) -> List[str]:
        """Flush the trailing statement, if any, and reset."""
        try:
            return list(self._scan(finished=True))
        finally:
            self.reset()

    def split(self, buffer: str) -> Iterator[str]:
        """Lazily split a complete buffer, then reset."""
        self.reset()
        self._buffer = buffer
        try:
            yield from self._scan(finished=True)
        finally:
            self.reset()

    def _scan(self, finished: bool) -> Iterator[str]:
        buf = self._buffer
        length = len(buf)
        start = 0
        i = self._scan_pos
        has_code = self._has_code

        # Cached lookups; None means "search again", False means "no more in buf"
        special = None
        keyword = None
        delim_pos = None

        while i < length:
            delimiter = self.delimiter

            if special is None or (special is not False and special.start() < i):
                special = _SPECIAL_RX.search(buf, i) or False
            if keyword is None or (keyword is not False and keyword.start() < i):
                keyword = _KEYWORD_RX.search(buf, i) or False
            if delim_pos is None or (delim_pos != -1 and delim_pos < i):
                delim_pos = buf.find(delimiter, i)

            candidates = []
            if special is not False:
                candidates.append((special.start(), 0))
            if keyword is not False:
                candidates.append((keyword.start(), 1))
            if delim_pos != -1:
                candidates.append((delim_pos, 2))

            if not candidates:
                # Mid-stream, the last few characters may open a token
                stop = length if finished else max(i, length - _lookahead(delimiter))
                has_code = has_code or _has_code(buf, i, stop)
                i = stop
                break

            pos, kind = min(candidates)
            has_code = has_code or _has_code(buf, i, pos)

            if kind == 0:
                token = special.group()
                if token in _QUOTES:
                    has_code = True
                    end = _closing_quote(buf, pos + 1, token)
                    if end == -1:
                        if not finished:
                            i = pos
                            break
                        # Unterminated quote ends the statement
                        i = length
                        continue
                    i = end + 1
                    continue

                if token == "/*":
                    end = buf.find("*/", pos + 2)
                    if end == -1:
                        if not finished:
                            i = pos
                            break
                        i = length
                        continue
                    if buf.startswith("/*!", pos):
                        has_code = True
                    i = end + 2
                    continue

                # "#" or "--" run to the end of the line
                end = buf.find("\n", pos + len(token))
                if end == -1:
                    if not finished:
                        i = pos
                        break
                    i = length
                    continue
                i = end + 1
                continue

            if kind == 1:
                line_end = buf.find("\n", keyword.end())
                if line_end == -1:
                    if not finished:
                        i = pos
                        break
                    line_end = length

                pending = buf[start:pos]
                if pending.strip():
                    self._carried += pending

                new_delimiter = buf[keyword.end():line_end].strip()
                if new_delimiter:
                    if new_delimiter != delimiter:
                        logger.debug(f"Statement delimiter changed to {new_delimiter!r}")
                    self.delimiter = new_delimiter
                    delim_pos = None
                else:
                    logger.warning(f"Ignoring DELIMITER directive without a token at offset {pos}")

                i = start = min(line_end + 1, length)
                continue

            statement = self._carried + buf[start:pos]
            self._carried = ""
            i = start = pos + len(delimiter)
            if has_code and _is_meaningful(statement, delimiter):
                yield statement.strip()
            has_code = False

        if finished:
            tail = self._carried + buf[start:]
            self._carried = ""
            if has_code and _is_meaningful(tail, self.delimiter):
                yield tail.strip()
            self._buffer = ""
            self._scan_pos = 0
            self._has_code = False
        else:
            self._buffer = buf[start:]
            self._scan_pos = i - start
            self._has_code = has_code


def split_statements(buffer: str, delimiter: str = DEFAULT_DELIMITER) -> Iterator[str]:
    """Lazily yield the statements of a complete dump buffer.

    Args:
        buffer: Dump text
        delimiter: Delimiter active at the start of the buffer

    Returns:
        Iterator over statement strings, without their delimiters
    """
    return StatementSplitter(delimiter).split(buffer)


def stream_statements(blocks: Iterable[str], delimiter: str = DEFAULT_DELIMITER) -> Iterator[str]:
    """Lazily yield the statements of a dump read in blocks.

    Args:
        blocks: Consecutive pieces of the dump text
        delimiter: Delimiter active at the start of the input

    Returns:
        Iterator over statement strings, without their delimiters
    """
    splitter = StatementSplitter(delimiter)
    for block in blocks:
        yield from splitter.feed(block)
    yield from splitter.close()


def _closing_quote(buf: str, start: int, quote: str) -> int:
    """Index of the first unescaped quote at or after start, or -1."""
    j = start
    while True:
        j = buf.find(quote, j)
        if j == -1:
            return -1
        backslashes = 0
        k = j - 1
        while k >= start and buf[k] == "\\":
            backslashes += 1
            k -= 1
        if backslashes % 2 == 0:
            return j
        j += 1


def _has_code(buf: str, start: int, end: int) -> bool:
    return end > start and _CODE_RX.search(buf, start, end) is not None


def _is_meaningful(statement: str, delimiter: Optional[str]) -> bool:
    text = statement.replace(delimiter, "") if delimiter else statement
    return bool(text.replace(";", "").strip())


def _lookahead(delimiter: str) -> int:
    return max(len(delimiter), len(DELIMITER_KEYWORD), len("/*!")) - 1
