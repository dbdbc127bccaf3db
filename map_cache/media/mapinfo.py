"""
Evaluates the table literal in a map's `mapinfo.lua` without running Lua.

Only the data subset used by map authors is understood: nested tables,
strings, numbers, booleans, nil and simple arithmetic between numbers.
Anything else (function calls, variable references) raises `MapInfoError`.
"""

import logging
import re
from pathlib import Path
from typing import Any

from map_cache.exceptions import MapParseError

log = logging.getLogger(__name__)

TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<long_comment>--\[(?P<lc_eq>=*)\[.*?\](?P=lc_eq)\])
  | (?P<comment>--[^\n]*)
  | (?P<long_string>\[(?P<ls_eq>=*)\[(?P<ls_body>.*?)\](?P=ls_eq)\])
  | (?P<string>"(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*')
  | (?P<number>0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>[{}\[\]=,;()+\-*/.])
    """,
    re.VERBOSE | re.DOTALL,
)

ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'", "\n": "\n"}


class MapInfoError(MapParseError):
    """Raised when `mapinfo.lua` contains something other than a data table."""


def _tokenize(source: str) -> list[tuple[str, Any]]:
    tokens: list[tuple[str, Any]] = []
    pos = 0
    while pos < len(source):
        match = TOKEN_RE.match(source, pos)
        if not match:
            raise MapInfoError(f"Unexpected character {source[pos]!r} at offset {pos}")
        pos = match.end()
        kind = match.lastgroup
        if kind in ("ws", "comment", "long_comment"):
            continue
        if kind == "long_string":
            tokens.append(("string", match.group("ls_body").removeprefix("\n")))
        elif kind == "string":
            tokens.append(("string", _unescape(match.group()[1:-1])))
        elif kind == "number":
            text = match.group()
            if text.lower().startswith("0x"):
                tokens.append(("number", int(text, 16)))
            elif re.fullmatch(r"\d+", text):
                tokens.append(("number", int(text)))
            else:
                tokens.append(("number", float(text)))
        else:
            tokens.append((kind, match.group()))
    return tokens


def _unescape(body: str) -> str:
    return re.sub(
        r"\\(.)", lambda m: ESCAPES.get(m.group(1), m.group(1)), body, flags=re.DOTALL
    )


class _Parser:
    def __init__(self, tokens: list[tuple[str, Any]]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> tuple[str, Any] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self) -> tuple[str, Any]:
        token = self.peek()
        if token is None:
            raise MapInfoError("Unexpected end of mapinfo")
        self.pos += 1
        return token

    def expect(self, value: str) -> None:
        kind, actual = self.next()
        if actual != value or kind not in ("op", "name"):
            raise MapInfoError(f"Expected {value!r}, found {actual!r}")

    def accept(self, value: str) -> bool:
        token = self.peek()
        if token and token[0] == "op" and token[1] == value:
            self.pos += 1
            return True
        return False

    def expression(self) -> Any:
        value = self.term()
        while (token := self.peek()) and token[0] == "op" and token[1] in "+-":
            self.pos += 1
            right = self.term()
            value = value + right if token[1] == "+" else value - right
        return value

    def term(self) -> Any:
        value = self.unary()
        while (token := self.peek()) and token[0] == "op" and token[1] in "*/":
            self.pos += 1
            right = self.unary()
            if token[1] == "*":
                value = value * right
            else:
                value = value / right
        return value

    def unary(self) -> Any:
        if self.accept("-"):
            value = self.unary()
            if not isinstance(value, (int, float)):
                raise MapInfoError("Unary minus applied to a non-number")
            return -value
        return self.primary()

    def primary(self) -> Any:
        kind, value = self.next()
        if kind in ("string", "number"):
            return value
        if kind == "name":
            if value == "true":
                return True
            if value == "false":
                return False
            if value == "nil":
                return None
            raise MapInfoError(f"Unsupported reference to '{value}'")
        if value == "{":
            return self.table()
        if value == "(":
            inner = self.expression()
            self.expect(")")
            return inner
        raise MapInfoError(f"Unexpected token {value!r}")

    def table(self) -> Any:
        entries: dict[Any, Any] = {}
        index = 1
        while not self.accept("}"):
            token = self.peek()
            following = (
                self.tokens[self.pos + 1] if self.pos + 1 < len(self.tokens) else None
            )
            if token and token == ("op", "["):
                self.pos += 1
                key = self.expression()
                self.expect("]")
                self.expect("=")
                entries[key] = self.expression()
            elif token and token[0] == "name" and following == ("op", "="):
                self.pos += 2
                entries[token[1]] = self.expression()
            else:
                entries[index] = self.expression()
                index += 1
            if not (self.accept(",") or self.accept(";")):
                self.expect("}")
                break
        if entries and list(entries) == list(range(1, len(entries) + 1)):
            return list(entries.values())
        return entries


def parse_lua_table(source: str) -> Any:
    """
    Parses the table returned by a mapinfo script.

    Accepts `return { ... }`, `local mapinfo = { ... } return mapinfo` and a
    bare `{ ... }`.
    """
    tokens = _tokenize(source)
    try:
        start = tokens.index(("op", "{"))
    except ValueError:
        raise MapInfoError("No table literal found") from None
    parser = _Parser(tokens)
    parser.pos = start + 1
    return parser.table()


def lookup(table: Any, *path: str, default: Any = None) -> Any:
    """Case-insensitive nested lookup, as the engine treats mapinfo keys."""
    current = table
    for key in path:
        if not isinstance(current, dict):
            return default
        lowered = {str(k).lower(): v for k, v in current.items()}
        if key.lower() not in lowered:
            return default
        current = lowered[key.lower()]
    return current if current is not None else default


def json_safe(value: Any) -> Any:
    """Converts table keys to strings so the result can be stored as JSON."""
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [json_safe(v) for v in value]
    return value


def load_mapinfo(path: Path) -> dict[str, Any] | None:
    """
    Reads and evaluates a `mapinfo.lua` file. Returns None if the file cannot
    be understood, in which case engine defaults apply.
    """
    try:
        source = path.read_text(encoding="utf-8", errors="replace")
        table = parse_lua_table(source)
    except (OSError, MapInfoError) as e:
        log.warning(f"Ignoring unreadable {path.name}: {e}")
        return None
    if not isinstance(table, dict):
        log.warning(f"Ignoring {path.name}: top-level value is not a table")
        return None
    return table
