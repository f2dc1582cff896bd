# poster_press/rendering/tokens.py
"""
Placeholder tokenization.

A template is split once into literal text and ``{{NAME}}`` placeholder
segments. Substitution walks that list a single time, so a value is never
rescanned for placeholders, even when it contains ``{{...}}`` itself.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass

PLACEHOLDER_RE = re.compile(r"\{\{([A-Z][A-Z0-9_]*)\}\}")


@dataclass(frozen=True)
class Segment:
    """Literal text (name=None) or a placeholder (name set, text is the raw token)."""

    text: str
    name: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.name is not None


def tokenize_template(source: str) -> list[Segment]:
    """Split template source into literal and placeholder segments."""
    segments: list[Segment] = []
    position = 0
    for match in PLACEHOLDER_RE.finditer(source):
        if match.start() > position:
            segments.append(Segment(source[position:match.start()]))
        segments.append(Segment(match.group(0), name=match.group(1)))
        position = match.end()
    if position < len(source):
        segments.append(Segment(source[position:]))
    return segments


def substitute(segments: list[Segment], values: Mapping[str, str]) -> str:
    """
    Join segments, replacing known placeholders with their values.

    Placeholders without a value are kept verbatim.
    """
    parts = []
    for segment in segments:
        if segment.is_placeholder and segment.name in values:
            parts.append(values[segment.name])
        else:
            parts.append(segment.text)
    return "".join(parts)


def placeholder_names(source: str) -> set[str]:
    """Names of all placeholders present in a template."""
    return {m.group(1) for m in PLACEHOLDER_RE.finditer(source)}
