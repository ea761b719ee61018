"""Highlighting of merged content against a diff."""

from .reconciler import HighlightKind, HighlightedLine, classify
from .markup import HIGHLIGHT_STYLES, render_document, render_html, render_terminal

__all__ = [
    "HighlightKind",
    "HighlightedLine",
    "classify",
    "HIGHLIGHT_STYLES",
    "render_document",
    "render_html",
    "render_terminal",
]
