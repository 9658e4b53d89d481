"""Render a property map as a Java ``.properties`` file or as JSON."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path

FORMATS = ("properties", "json")

_SPECIAL = {"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t", "\f": "\\f"}
_KEY_SPECIAL = {" ": "\\ ", ":": "\\:", "=": "\\=", "#": "\\#", "!": "\\!"}


def _escape(text: str, is_key: bool) -> str:
    out: list[str] = []
    for i, c in enumerate(text):
        if c in _SPECIAL:
            out.append(_SPECIAL[c])
        elif is_key and c in _KEY_SPECIAL:
            out.append(_KEY_SPECIAL[c])
        elif c == " " and i == 0:
            out.append("\\ ")
        elif c in "#!" and i == 0:
            out.append("\\" + c)
        elif ord(c) < 0x20 or ord(c) > 0x7E:
            out.append(f"\\u{ord(c):04x}" if ord(c) <= 0xFFFF else _surrogates(c))
        else:
            out.append(c)
    return "".join(out)


def _surrogates(c: str) -> str:
    encoded = c.encode("utf-16-be")
    return "".join(
        f"\\u{int.from_bytes(encoded[i:i + 2], 'big'):04x}" for i in range(0, len(encoded), 2)
    )


def to_properties(properties: Mapping[str, str]) -> str:
    """Serialize *properties* sorted by key, one ``key=value`` per line."""
    lines = [
        f"{_escape(key, True)}={_escape(value, False)}"
        for key, value in sorted(properties.items())
    ]
    return "\n".join(lines) + "\n" if lines else ""


def to_json(properties: Mapping[str, str]) -> str:
    return json.dumps(dict(sorted(properties.items())), indent=2) + "\n"


def render(properties: Mapping[str, str], fmt: str = "properties") -> str:
    if fmt == "json":
        return to_json(properties)
    if fmt == "properties":
        return to_properties(properties)
    raise ValueError(f"Unknown output format {fmt!r}; choose from {', '.join(FORMATS)}")


def write_properties(properties: Mapping[str, str], output_path: Path, fmt: str = "properties") -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render(properties, fmt), encoding="ascii" if fmt == "properties" else "utf-8")
