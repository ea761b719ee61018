# diffmerge/highlight/markup.py
"""HTML and terminal rendering of classified merge lines."""

import html
from typing import Iterable

from .reconciler import HighlightKind, HighlightedLine

HIGHLIGHT_STYLES = """
.added-content {
  background-color: rgba(76, 175, 80, 0.15);
  display: block;
  border-left: 3px solid #4caf50;
  padding-left: 8px;
}

.conflict-content {
  background-color: rgba(255, 152, 0, 0.15);
  display: block;
  border-left: 3px solid #ff9800;
  padding-left: 8px;
}
"""

_CSS_CLASSES = {
    HighlightKind.ADDED: "added-content",
    HighlightKind.CONFLICT: "conflict-content",
}

_TERMINAL_PREFIXES = {
    HighlightKind.ADDED: "+ ",
    HighlightKind.CONFLICT: "! ",
    HighlightKind.NONE: "  ",
}


def render_html(lines: Iterable[HighlightedLine]) -> str:
    """Escape each line and wrap highlighted ones in a styled span."""
    rendered = []
    for line in lines:
        escaped = html.escape(line.text, quote=True)
        css_class = _CSS_CLASSES.get(line.highlight)
        if css_class:
            rendered.append(f'<span class="{css_class}">{escaped}</span>')
        else:
            rendered.append(escaped)
    return "\n".join(rendered)


def render_document(lines: Iterable[HighlightedLine], title: str = "Merged document") -> str:
    """Standalone HTML page with the highlight styles embedded."""
    return (
        "<!DOCTYPE html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{html.escape(title)}</title>"
        f"<style>{HIGHLIGHT_STYLES}</style></head>\n"
        f"<body><pre>{render_html(lines)}</pre></body></html>\n"
    )


def render_terminal(lines: Iterable[HighlightedLine]) -> str:
    """Plain-text rendering with a marker column."""
    return "\n".join(_TERMINAL_PREFIXES[line.highlight] + line.text for line in lines)
