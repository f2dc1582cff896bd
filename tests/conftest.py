"""Shared fixtures: sample template and bundle, seeded local storage, fake compilers."""

import json
import stat
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from poster_press.compiler.tectonic import CompilationResult, TectonicCompiler
from poster_press.errors import CompileError
from poster_press.gateways.storage import LocalObjectStore
from poster_press.gateways.templates import LocalTemplateSource
from poster_press.models.jobs import JobRecord, JobState, RenderMode

PROJECT_ID = "proj-1"
TEMPLATE_ID = "classic"

TEMPLATE = r"""\documentclass{beamer}
\usepackage{lmodern}
\begin{document}
\begin{frame}
\title{{{TITLE}}}
\author{{{AUTHORS}}}
\institute{{{AFFILIATIONS}}}
\section{Introduction} {{INTRO}}
\section{Methods} {{METHODS}}
\section{Results} {{RESULTS}}
\section{Discussion} {{DISCUSSION}}
\section{Conclusion} {{CONCLUSION}}
\includegraphics{{{FIGURE_1}}} {{CAPTION_1}}
\includegraphics{{{FIGURE_2}}} {{CAPTION_2}}
\end{frame}
\end{document}
"""

BUNDLE = {
    "title": "Soil Microbes & Drought",
    "authors": "A. Author, B. Author",
    "affiliations": "Field Lab",
    "intro": "Why microbes matter.",
    "methods": "We sampled 40 plots.",
    "results": "Diversity fell 30%.",
    "discussion": "Drought selects for spore formers.",
    "conclusion": "Watch the microbes.",
    "figures": [
        {"filePath": "uploads/fig1.png", "caption": "Plot map"},
        {"filePath": "fig2.png", "caption": "Diversity over time"},
    ],
}

FIGURE_BYTES = {"fig1.png": b"\x89PNG fig1", "fig2.png": b"\x89PNG fig2"}

SUCCESS_SCRIPT = """#!/bin/sh
# called as: tectonic --keep-logs --synctex --outdir OUT SRC
out="$4"
src="$5"
name=$(basename "$src" .tex)
printf '%%PDF-1.4 fake\\n' > "$out/$name.pdf"
echo "note: wrote $name.pdf"
"""

FAILURE_SCRIPT = """#!/bin/sh
echo "error: main.tex:3: Undefined control sequence" >&2
head -c 10000 /dev/zero | tr '\\0' 'x' >&2
exit 1
"""

HANG_SCRIPT = """#!/bin/sh
exec sleep 30
"""


def make_job(
    job_id: str = "job-1",
    mode: RenderMode = RenderMode.FINAL,
    template_id: str = TEMPLATE_ID,
    project_id: str = PROJECT_ID,
    state: JobState = JobState.QUEUED,
    age_seconds: float = 0.0,
) -> JobRecord:
    return JobRecord(
        job_id=job_id,
        project_id=project_id,
        template_id=template_id,
        mode=mode,
        state=state,
        created_at=datetime.now(timezone.utc) - timedelta(seconds=age_seconds),
    )


def write_script(directory: Path, name: str, body: str) -> Path:
    """Write an executable shell script standing in for the compiler."""
    path = directory / name
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)
    return path


class FakeCompiler:
    """In-process compiler stand-in that records what it was asked to compile."""

    def __init__(self, error: str | None = None) -> None:
        self.error = error
        self.sources: list[str] = []
        self.assets: list[list[str]] = []

    def is_available(self) -> bool:
        return True

    async def compile(self, source_path: Path, output_dir: Path) -> CompilationResult:
        self.sources.append(source_path.read_text(encoding="utf-8"))
        assets_dir = source_path.parent / "assets"
        self.assets.append(sorted(p.name for p in assets_dir.iterdir()))
        if self.error is not None:
            raise CompileError(self.error)
        pdf = output_dir / f"{source_path.stem}.pdf"
        pdf.write_bytes(b"%PDF-1.4 fake")
        return CompilationResult(pdf_path=pdf)


@pytest.fixture
def storage(tmp_path: Path) -> LocalObjectStore:
    """Local object store seeded with the sample bundle and its figures."""
    store = LocalObjectStore(tmp_path / "storage")
    bundle_path = store.path_for(f"projects/{PROJECT_ID}/ai_summary.json")
    bundle_path.parent.mkdir(parents=True, exist_ok=True)
    bundle_path.write_text(json.dumps(BUNDLE), encoding="utf-8")
    for name, data in FIGURE_BYTES.items():
        path = store.path_for(f"projects/{PROJECT_ID}/poster/assets/{name}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    return store


@pytest.fixture
def templates(tmp_path: Path) -> LocalTemplateSource:
    directory = tmp_path / "templates"
    directory.mkdir()
    (directory / f"{TEMPLATE_ID}.tex").write_text(TEMPLATE, encoding="utf-8")
    return LocalTemplateSource(directory)


@pytest.fixture
def fake_compiler() -> FakeCompiler:
    return FakeCompiler()


@pytest.fixture
def script_compiler(tmp_path: Path):
    """Factory for a TectonicCompiler whose binary is a shell script."""

    def _make(body: str, timeout: float = 30.0) -> TectonicCompiler:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        script = write_script(bin_dir, "fake-tectonic", body)
        return TectonicCompiler(binary=str(script), timeout=timeout)

    return _make
