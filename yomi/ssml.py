from __future__ import annotations

import html
from typing import Any, Iterable, Mapping

MARK_PREFIX = "token_"

_SSML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)
_CONTROL_WHITESPACE = str.maketrans({"\n": " ", "\r": " ", "\t": " "})


def mark_name(index: int) -> str:
    return f"{MARK_PREFIX}{index}"


def escape_ssml(text: str) -> str:
    # "&" must be replaced first so entities are not double escaped.
    for raw, entity in _SSML_ESCAPES:
        text = text.replace(raw, entity)
    return text.translate(_CONTROL_WHITESPACE)


def unescape_ssml(text: str) -> str:
    return html.unescape(text)


def token_surface(token: Any) -> str:
    if isinstance(token, Mapping):
        surface = token.get("surface")
    else:
        surface = getattr(token, "surface", None)
    if surface is None:
        return ""
    return str(surface)


def build_ssml(tokens: Iterable[Any]) -> str:
    """Build ``<speak>`` markup with a ``<mark/>`` before every token.

    A trailing mark named for ``len(tokens)`` closes the sequence so the
    last token's end time can be recovered.
    """
    parts = ["<speak>"]
    count = 0
    for index, token in enumerate(tokens):
        parts.append(f'<mark name="{mark_name(index)}"/>')
        parts.append(escape_ssml(token_surface(token)))
        count = index + 1
    parts.append(f'<mark name="{mark_name(count)}"/>')
    parts.append("</speak>")
    return "".join(parts)
