"""
Xcode `project.pbxproj`（OpenStep 风格 plist）解析与字符串转义。

解析结果是普通的 `dict`/`list`/`str` 结构，但字符串与字典分别是
`PbxString`/`PbxDict` 子类，额外记录它们在源文本中的偏移，
以便只改写目标字段而保持其余内容逐字节不变。
"""

from __future__ import annotations

import re
from typing import Any, NamedTuple

from .errors import ParseError

_TOKEN_RE = re.compile(
    r"""
      (?P<ws>\s+)
    | (?P<block>/\*.*?\*/)
    | (?P<line>//[^\n]*)
    | (?P<quoted>"(?:[^"\\]|\\.)*")
    | (?P<squoted>'(?:[^'\\]|\\.)*')
    | (?P<punct>[{}()=;,])
    | (?P<bare>(?:[^\s{}()=;,"'/]|/(?![/*]))+)
    """,
    re.VERBOSE | re.DOTALL,
)

# 无需加引号即可写出的字符串。
_BARE_RE = re.compile(r"^[A-Za-z0-9_$/:.\-]+$")

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "'": "'", "\\": "\\"}


class PbxString(str):
    """带源文本区间（含引号）的字符串值。"""

    start: int
    end: int
    raw: str

    def __new__(cls, value: str, start: int, end: int, raw: str) -> PbxString:
        obj = super().__new__(cls, value)
        obj.start = start
        obj.end = end
        obj.raw = raw
        return obj


class PbxDict(dict):
    """记录 `{` 与 `}` 偏移的字典。"""

    start = -1
    end = -1


class _Token(NamedTuple):
    kind: str
    text: str
    start: int
    end: int


def _line_of(text: str, pos: int) -> int:
    return text.count("\n", 0, pos) + 1


def _unquote(raw: str) -> str:
    body = raw[1:-1]
    if "\\" not in body:
        return body
    out: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if not m:
            raise ParseError(f"unexpected character {text[pos]!r} at line {_line_of(text, pos)}")
        kind = m.lastgroup or ""
        if kind == "punct":
            tokens.append(_Token(m.group(), m.group(), m.start(), m.end()))
        elif kind in ("quoted", "squoted", "bare"):
            tokens.append(_Token("string", m.group(), m.start(), m.end()))
        pos = m.end()
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = _tokenize(text)
        self.i = 0

    def _fail(self, message: str, tok: _Token | None = None) -> ParseError:
        if tok is None:
            return ParseError(f"{message} at end of input")
        return ParseError(f"{message} at line {_line_of(self.text, tok.start)}")

    def _peek(self) -> _Token | None:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def _next(self) -> _Token:
        tok = self._peek()
        if tok is None:
            raise self._fail("unexpected end of input")
        self.i += 1
        return tok

    def _expect(self, kind: str) -> _Token:
        tok = self._next()
        if tok.kind != kind:
            raise self._fail(f"expected {kind!r}, got {tok.text!r}", tok)
        return tok

    def parse(self) -> Any:
        value = self._value()
        tok = self._peek()
        if tok is not None:
            raise self._fail(f"trailing content {tok.text!r}", tok)
        return value

    def _value(self) -> Any:
        tok = self._next()
        if tok.kind == "{":
            return self._dict(tok)
        if tok.kind == "(":
            return self._array()
        if tok.kind == "string":
            return self._string(tok)
        raise self._fail(f"unexpected {tok.text!r}", tok)

    def _string(self, tok: _Token) -> PbxString:
        raw = tok.text
        value = _unquote(raw) if raw[0] in "\"'" else raw
        return PbxString(value, tok.start, tok.end, raw)

    def _dict(self, open_tok: _Token) -> PbxDict:
        out = PbxDict()
        out.start = open_tok.start
        while True:
            tok = self._peek()
            if tok is None:
                raise self._fail("unterminated dictionary")
            if tok.kind == "}":
                self.i += 1
                out.end = tok.start
                return out
            key = self._next()
            if key.kind != "string":
                raise self._fail(f"expected key, got {key.text!r}", key)
            self._expect("=")
            value = self._value()
            self._expect(";")
            out[str(self._string(key))] = value

    def _array(self) -> list[Any]:
        out: list[Any] = []
        while True:
            tok = self._peek()
            if tok is None:
                raise self._fail("unterminated array")
            if tok.kind == ")":
                self.i += 1
                return out
            out.append(self._value())
            tok = self._peek()
            if tok is not None and tok.kind == ",":
                self.i += 1
            elif tok is None or tok.kind != ")":
                raise self._fail("expected ',' or ')' in array", tok)


def parse_pbxproj(text: str) -> Any:
    """解析 OpenStep plist 文本，语法错误时抛出 `ParseError`。"""
    return _Parser(text).parse()


def quote_string(value: str) -> str:
    """按 Xcode 的写法输出字符串：安全字符直接写，其余加双引号转义。"""
    if value and _BARE_RE.match(value) and "//" not in value:
        return value
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'
