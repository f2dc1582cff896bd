# poster_press/rendering/renderer.py
"""
Template renderer: (template source, input bundle, mode) -> LaTeX source.

Pure and deterministic. Structural edits (preamble, watermark) are applied
to the template first; user text is substituted last, escaped exactly once,
so it can never be mistaken for a structural anchor.
"""

import logging
from dataclasses import dataclass, field

from poster_press.models.jobs import RenderMode
from poster_press.paths import asset_name, basename
from poster_press.rendering.latex import add_watermark, ensure_graphics_preamble, latex_escape
from poster_press.rendering.tokens import substitute, tokenize_template
from poster_press.schemas.bundle import MAX_FIGURES, InputBundle

logger = logging.getLogger(__name__)

ASSETS_DIR = "assets"

# Placeholder name -> InputBundle text field
TEXT_PLACEHOLDERS = {
    "TITLE": "title",
    "AUTHORS": "authors",
    "AFFILIATIONS": "affiliations",
    "INTRO": "intro",
    "METHODS": "methods",
    "RESULTS": "results",
    "DISCUSSION": "discussion",
    "CONCLUSION": "conclusion",
}


@dataclass(frozen=True)
class StagedFigure:
    """A figure to download: its storage name and its file name under assets/."""

    storage_name: str
    asset_name: str


@dataclass
class RenderedDocument:
    """Rendered LaTeX source plus the figures it references."""

    source: str
    figures: list[StagedFigure] = field(default_factory=list)


def _stage_figures(bundle: InputBundle) -> list[StagedFigure | None]:
    """
    Map the placed figures to staged files, one slot per figure position.

    A slot is None when the figure has no usable path. Duplicate asset names
    get a position prefix so two figures never share a file.
    """
    slots: list[StagedFigure | None] = []
    used: set[str] = set()
    for position, figure in enumerate(bundle.placed_figures, start=1):
        storage_name = basename(figure.file_path or "")
        if not storage_name:
            slots.append(None)
            continue
        name = asset_name(storage_name)
        if name in used:
            name = f"{position}-{name}"
        used.add(name)
        slots.append(StagedFigure(storage_name=storage_name, asset_name=name))
    return slots


def build_values(bundle: InputBundle) -> tuple[dict[str, str], list[StagedFigure]]:
    """Placeholder values for a bundle, plus the figures they reference."""
    values = {
        token: latex_escape(getattr(bundle, attr))
        for token, attr in TEXT_PLACEHOLDERS.items()
    }

    slots = _stage_figures(bundle)
    placed = bundle.placed_figures
    for position in range(1, MAX_FIGURES + 1):
        slot = slots[position - 1] if position <= len(slots) else None
        caption = placed[position - 1].caption if position <= len(placed) else ""
        values[f"FIGURE_{position}"] = f"{ASSETS_DIR}/{slot.asset_name}" if slot else ""
        values[f"CAPTION_{position}"] = latex_escape(caption)

    return values, [s for s in slots if s is not None]


def render_document(template_source: str, bundle: InputBundle, mode: RenderMode) -> RenderedDocument:
    """
    Render a poster template.

    Args:
        template_source: Raw LaTeX skeleton with {{PLACEHOLDER}} tokens
        bundle: Validated input bundle
        mode: Render mode (preview adds the watermark)

    Returns:
        RenderedDocument with final source and staged figures

    Raises:
        TemplateIntegrityError: If preview mode needs \\begin{document} and it is missing
    """
    tex = ensure_graphics_preamble(template_source)
    if mode.watermarked:
        tex = add_watermark(tex)

    values, figures = build_values(bundle)
    if len(bundle.figures) > MAX_FIGURES:
        logger.info(
            f"Bundle has {len(bundle.figures)} figures; only the first {MAX_FIGURES} are placed"
        )

    source = substitute(tokenize_template(tex), values)
    return RenderedDocument(source=source, figures=figures)
