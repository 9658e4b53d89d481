"""Lexical helpers shared by the Groovy and Kotlin DSL parsers."""

from __future__ import annotations

import re

# A single- or double-quoted string literal, without escapes or templates.
STRING_RE = re.compile(r"""["']([^"'\n]*)["']""")

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
# "//" preceded by start of line or whitespace, so URLs inside strings survive.
_LINE_COMMENT_RE = re.compile(r"(^|\s)//.*$", re.MULTILINE)


def strip_comments(text: str) -> str:
    return _LINE_COMMENT_RE.sub(r"\1", _BLOCK_COMMENT_RE.sub("", text))


def _block_end(text: str, start: int) -> int:
    """Index of the ``}`` closing the block whose body starts at *start*."""
    depth = 1
    quote: str | None = None
    i = start
    while i < len(text):
        c = text[i]
        if quote is not None:
            if c == "\\":
                i += 2
                continue
            if c == quote:
                quote = None
        elif c in "\"'":
            quote = c
        elif c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return len(text)


def _head_re(name: str) -> re.Pattern[str]:
    # name { ... } or name("arg") { ... }, not preceded by a dot or identifier
    return re.compile(rf"(?<![\w.]){re.escape(name)}\s*(?:\([^)]*\))?\s*\{{")


def find_blocks(text: str, name: str) -> list[str]:
    """Return the bodies of every top-level-or-nested ``name { ... }`` block."""
    bodies: list[str] = []
    for m in _head_re(name).finditer(text):
        end = _block_end(text, m.end())
        bodies.append(text[m.end() : end])
    return bodies


def remove_blocks(text: str, *names: str) -> str:
    """Return *text* without any of the named blocks."""
    for name in names:
        pattern = _head_re(name)
        while True:
            m = pattern.search(text)
            if m is None:
                break
            end = _block_end(text, m.end())
            text = text[: m.start()] + text[end + 1 :]
    return text


def child_blocks(body: str) -> dict[str, str]:
    """Named sub-blocks of *body*: ``debug {}``, ``create("x") {}``, ``getByName("x") {}``."""
    result: dict[str, str] = {}
    pattern = re.compile(
        r"""(?:(?:create|register|getByName|maybeCreate)\s*\(\s*["']([\w-]+)["']\s*\)"""
        r"""|(?<![\w.])([A-Za-z_]\w*))\s*\{"""
    )
    pos = 0
    while True:
        m = pattern.search(body, pos)
        if m is None:
            break
        end = _block_end(body, m.end())
        name = m.group(1) or m.group(2)
        result[name] = body[m.end() : end]
        pos = end + 1
    return result


def literal(value: str) -> str:
    """Unquote a literal value: ``"x"`` → ``x``; ``true``/``17`` stay as is."""
    value = value.strip()
    m = STRING_RE.fullmatch(value)
    return m.group(1) if m else value
