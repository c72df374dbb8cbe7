"""Minimal template rendering for stored email templates.

Supports two constructs:

* ``{{#if field}} ... {{/if}}`` keeps the enclosed text only when
  ``context[field]`` is truthy (blocks do not nest);
* ``{{field}}`` is replaced by ``context[field]``; unknown names render empty.
"""

from __future__ import annotations

import html
import re
from typing import Any, Mapping

_IF_BLOCK = re.compile(r"\{\{#if\s+(\w+)\s*\}\}(.*?)\{\{/if\}\}", re.DOTALL)
_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "value"):  # enums
        value = value.value
    return str(value)


def render(text: str, context: Mapping[str, Any], *, escape: bool = False) -> str:
    """Render *text* against *context*.

    With ``escape=True`` substituted values are HTML-escaped; the template
    markup itself is left untouched.
    """

    def _if(match: re.Match) -> str:
        return match.group(2) if context.get(match.group(1)) else ""

    def _sub(match: re.Match) -> str:
        value = _to_text(context.get(match.group(1)))
        return html.escape(value) if escape else value

    return _PLACEHOLDER.sub(_sub, _IF_BLOCK.sub(_if, text))


def placeholders(text: str) -> list[str]:
    """Names referenced by *text*, in first-seen order."""
    seen: dict[str, None] = {}
    for match in _IF_BLOCK.finditer(text):
        seen.setdefault(match.group(1), None)
    for match in _PLACEHOLDER.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)
