from __future__ import annotations

import html
import re

from bs4 import BeautifulSoup

_whitespace_re = re.compile(r"\s+")
# Entity-looking tokens that survive unescaping (unknown or double-escaped)
_leftover_entity_re = re.compile(r"&[a-zA-Z0-9#]+;")
_control_chars_re = re.compile(r"[\u0000-\u0008\u000B\u000C\u000E-\u001F\u007F]")


def clean_text(raw: str | None) -> str:
    """Turn feed markup into a single line of plain text.

    - Strip HTML tags
    - Decode HTML entities, dropping any that cannot be decoded
    - Remove control characters
    - Collapse whitespace
    """
    if not raw:
        return ""

    text = raw
    if "<" in text or "&" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")
        text = html.unescape(text)
        text = _leftover_entity_re.sub(" ", text)
    text = _control_chars_re.sub(" ", text)
    return _whitespace_re.sub(" ", text).strip()
