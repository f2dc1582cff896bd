# poster_press/rendering/latex.py
"""
LaTeX text helpers: escaping user text and patching template preambles.

All preamble edits are idempotent: applying them to their own output
changes nothing.
"""

import re

from poster_press.errors import TemplateIntegrityError

LMODERN_ANCHOR = r"\usepackage{lmodern}"
GRAPHICX_PACKAGE = r"\usepackage{graphicx}"
GRAPHICSPATH = r"\graphicspath{{./assets/}}"
ESO_PIC_PACKAGE = r"\usepackage{eso-pic}"
BEGIN_DOCUMENT = r"\begin{document}"

WATERMARK_TEXT = "FREE PREVIEW"
WATERMARK_OVERLAY = (
    r"\AddToShipoutPictureFG*{\AtPageCenter{\makebox(0,0){"
    r"\resizebox{1.2\paperwidth}{!}{\rotatebox{35}{"
    r"\textsf{\color{gray!35} " + WATERMARK_TEXT + r"}}}}}}"
)

_SPECIALS = {
    "\\": r"\textbackslash{}",
    "~": r"\textasciitilde{}",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "&": r"\&",
    "_": r"\_",
    "^": r"\^{}",
    "{": r"\{",
    "}": r"\}",
}
_SPECIALS_RE = re.compile("|".join(re.escape(ch) for ch in _SPECIALS))


def latex_escape(text: str) -> str:
    """
    Escape raw text so TeX typesets it literally.

    One regex pass: the braces introduced for ``\\`` and ``~`` are never
    escaped a second time.
    """
    return _SPECIALS_RE.sub(lambda m: _SPECIALS[m.group(0)], text)


def _declares(tex: str, package: str) -> bool:
    """True if ``\\usepackage{package}`` or ``\\usepackage[...]{package}`` is present."""
    return re.search(r"\\usepackage(\[[^\]]*\])?\{" + re.escape(package) + r"\}", tex) is not None


def _insert_after(tex: str, anchor: str, lines: str) -> str:
    """Insert lines after the first occurrence of anchor (no-op if anchor is absent)."""
    index = tex.find(anchor)
    if index == -1:
        return tex
    end = index + len(anchor)
    return tex[:end] + "\n" + lines + tex[end:]


def ensure_graphics_preamble(tex: str) -> str:
    """
    Make sure graphicx is loaded and figures resolve from ./assets/.

    graphicx is injected after the lmodern anchor; a template without the
    anchor is left untouched and the compiler reports the problem.
    """
    if not _declares(tex, "graphicx"):
        tex = _insert_after(tex, LMODERN_ANCHOR, f"{GRAPHICX_PACKAGE}\n{GRAPHICSPATH}")
    if r"\graphicspath" not in tex:
        match = re.search(r"\\usepackage(\[[^\]]*\])?\{graphicx\}", tex)
        if match:
            tex = _insert_after(tex, match.group(0), GRAPHICSPATH)
    return tex


def _ensure_package(tex: str, package: str) -> str:
    """Declare a package right before \\begin{document} unless already present."""
    if _declares(tex, package):
        return tex
    index = tex.find(BEGIN_DOCUMENT)
    return tex[:index] + f"\\usepackage{{{package}}}\n" + tex[index:]


def add_watermark(tex: str) -> str:
    """
    Overlay a diagonal FREE PREVIEW watermark on every page.

    Raises:
        TemplateIntegrityError: If the template has no \\begin{document}
    """
    if BEGIN_DOCUMENT not in tex:
        raise TemplateIntegrityError(
            "Template has no \\begin{document}; cannot place preview watermark"
        )

    if not _declares(tex, "eso-pic"):
        if _declares(tex, "graphicx"):
            match = re.search(r"\\usepackage(\[[^\]]*\])?\{graphicx\}", tex)
            tex = _insert_after(tex, match.group(0), ESO_PIC_PACKAGE)
        else:
            tex = _ensure_package(tex, "eso-pic")
    tex = _ensure_package(tex, "xcolor")

    if WATERMARK_OVERLAY in tex:
        return tex
    return _insert_after(tex, BEGIN_DOCUMENT, WATERMARK_OVERLAY)
