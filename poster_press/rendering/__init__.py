"""Template rendering: escaping, preamble patching and placeholder substitution."""

from .latex import add_watermark, ensure_graphics_preamble, latex_escape
from .renderer import RenderedDocument, StagedFigure, render_document
from .tokens import Segment, substitute, tokenize_template

__all__ = [
    "render_document",
    "RenderedDocument",
    "StagedFigure",
    "latex_escape",
    "ensure_graphics_preamble",
    "add_watermark",
    "tokenize_template",
    "substitute",
    "Segment",
]
