"""Tests for LaTeX escaping and idempotent preamble/watermark injection."""

import pytest

from poster_press.errors import ErrorCode, TemplateIntegrityError
from poster_press.rendering.latex import (
    ESO_PIC_PACKAGE,
    GRAPHICSPATH,
    GRAPHICX_PACKAGE,
    WATERMARK_OVERLAY,
    add_watermark,
    ensure_graphics_preamble,
    latex_escape,
)

BARE = "\\documentclass{beamer}\n\\usepackage{lmodern}\n\\begin{document}\nbody\n\\end{document}\n"


class TestEscape:
    def test_every_special_character(self):
        escaped = latex_escape("\\ % $ # & _ ^ { } ~")
        assert escaped == (
            "\\textbackslash{} \\% \\$ \\# \\& \\_ \\^{} \\{ \\} \\textasciitilde{}"
        )

    def test_backslash_braces_not_reescaped(self):
        # The {} emitted for a backslash must survive as real braces
        assert latex_escape("a\\b") == "a\\textbackslash{}b"

    def test_caret_does_not_take_an_argument(self):
        # \^ alone is the accent macro and would swallow the next token
        assert latex_escape("x^") == "x\\^{}"
        assert latex_escape("^{") == "\\^{}\\{"

    def test_plain_text_unchanged(self):
        assert latex_escape("Plain text, 42 (ok).") == "Plain text, 42 (ok)."

    def test_directive_injection_neutralized(self):
        escaped = latex_escape("\\input{/etc/passwd}")
        assert "\\input{" not in escaped
        assert escaped == "\\textbackslash{}input\\{/etc/passwd\\}"


class TestGraphicsPreamble:
    def test_injects_after_anchor(self):
        out = ensure_graphics_preamble(BARE)
        assert out.count(GRAPHICX_PACKAGE) == 1
        assert out.count(GRAPHICSPATH) == 1
        assert "\\usepackage{lmodern}\n\\usepackage{graphicx}\n\\graphicspath" in out

    def test_idempotent(self):
        once = ensure_graphics_preamble(BARE)
        assert ensure_graphics_preamble(once) == once

    def test_existing_package_not_duplicated(self):
        tex = BARE.replace("\\usepackage{lmodern}", "\\usepackage{lmodern}\n\\usepackage{graphicx}")
        out = ensure_graphics_preamble(tex)
        assert out.count(GRAPHICX_PACKAGE) == 1
        assert out.count(GRAPHICSPATH) == 1

    def test_package_with_options_counts_as_present(self):
        tex = BARE.replace("\\usepackage{lmodern}", "\\usepackage{lmodern}\n\\usepackage[draft]{graphicx}")
        out = ensure_graphics_preamble(tex)
        assert GRAPHICX_PACKAGE not in out
        assert "\\usepackage[draft]{graphicx}\n" + GRAPHICSPATH in out

    def test_existing_graphicspath_kept(self):
        tex = BARE.replace(
            "\\usepackage{lmodern}",
            "\\usepackage{lmodern}\n\\usepackage{graphicx}\n\\graphicspath{{figs/}}",
        )
        assert ensure_graphics_preamble(tex) == tex

    def test_missing_anchor_left_alone(self):
        tex = "\\documentclass{article}\n\\begin{document}\n\\end{document}\n"
        assert ensure_graphics_preamble(tex) == tex


class TestWatermark:
    def test_overlay_follows_begin_document(self):
        out = add_watermark(ensure_graphics_preamble(BARE))
        assert "\\begin{document}\n" + WATERMARK_OVERLAY in out
        assert "FREE PREVIEW" in out

    def test_eso_pic_added_once(self):
        once = add_watermark(ensure_graphics_preamble(BARE))
        assert once.count(ESO_PIC_PACKAGE) == 1
        assert "\\usepackage{graphicx}\n" + ESO_PIC_PACKAGE in once

    def test_idempotent(self):
        once = add_watermark(ensure_graphics_preamble(BARE))
        assert add_watermark(once) == once

    def test_existing_eso_pic_not_duplicated(self):
        tex = BARE.replace("\\usepackage{lmodern}", "\\usepackage{lmodern}\n\\usepackage{eso-pic}")
        out = add_watermark(tex)
        assert out.count(ESO_PIC_PACKAGE) == 1

    def test_missing_begin_document_is_integrity_error(self):
        with pytest.raises(TemplateIntegrityError) as excinfo:
            add_watermark("\\documentclass{beamer}\n\\usepackage{lmodern}\n")
        assert excinfo.value.code == ErrorCode.RENDER_FAILED
