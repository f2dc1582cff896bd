# poster_press/compiler/tectonic.py
"""
Tectonic compiler invocation.

Runs the TeX engine as a subprocess against a working directory. The
result is pass/fail only: diagnostics are captured, bounded and returned,
never interpreted.
"""

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path

from poster_press.errors import CompileError, truncate_detail

logger = logging.getLogger(__name__)


@dataclass
class CompilationResult:
    """
    Successful compilation.

    Attributes:
        pdf_path: Path to the produced PDF
        stdout: Compiler standard output
        stderr: Compiler standard error
        duration: Wall-clock seconds spent in the compiler
    """

    pdf_path: Path
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0


class TectonicCompiler:
    """Async wrapper around the ``tectonic`` command line."""

    def __init__(
        self,
        binary: str = "tectonic",
        timeout: float = 300.0,
        max_diagnostic_chars: int = 4000,
        extra_args: list[str] | None = None,
    ) -> None:
        """
        Initialize compiler wrapper.

        Args:
            binary: Executable name or path
            timeout: Seconds before the process is killed
            max_diagnostic_chars: Bound on diagnostic text carried by CompileError
            extra_args: Additional command line arguments
        """
        self.binary = binary
        self.timeout = timeout
        self.max_diagnostic_chars = max_diagnostic_chars
        self.extra_args = list(extra_args or [])

    @classmethod
    def from_config(cls, config) -> "TectonicCompiler":
        """Build from a CompilerConfig."""
        return cls(
            binary=config.binary,
            timeout=config.timeout,
            max_diagnostic_chars=config.max_diagnostic_chars,
            extra_args=config.extra_args,
        )

    def is_available(self) -> bool:
        """True if the compiler executable can be found."""
        return shutil.which(self.binary) is not None

    def build_command(self, source_path: Path, output_dir: Path) -> list[str]:
        return [
            self.binary,
            "--keep-logs",
            "--synctex",
            "--outdir",
            str(output_dir),
            *self.extra_args,
            str(source_path),
        ]

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()

    def _fail(self, message: str) -> CompileError:
        return CompileError(truncate_detail(message, self.max_diagnostic_chars))

    async def compile(self, source_path: Path, output_dir: Path) -> CompilationResult:
        """
        Compile a .tex file into output_dir.

        Args:
            source_path: LaTeX source file; its directory is the working directory
            output_dir: Existing directory receiving the PDF and logs

        Returns:
            CompilationResult pointing at the PDF

        Raises:
            CompileError: On non-zero exit, timeout, launch failure or missing PDF
        """
        command = self.build_command(source_path, output_dir)
        logger.info(f"Compiling {source_path.name} with {self.binary}")
        start = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(source_path.parent),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise self._fail(f"Failed to start {self.binary}: {e}") from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            raise self._fail(f"{self.binary} timed out after {self.timeout:g}s")
        except BaseException:
            # Cancelled (worker shutdown): the process must not outlive its working dir
            await self._kill(process)
            raise

        duration = time.monotonic() - start
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")

        if process.returncode != 0:
            logger.warning(
                f"{self.binary} exited with code {process.returncode} after {duration:.1f}s"
            )
            # stderr carries tectonic's error summary; keep it first so truncation drops stdout
            raise self._fail(
                f"{self.binary} exited with code {process.returncode}\n{stderr}\n{stdout}"
            )

        pdf_path = output_dir / f"{source_path.stem}.pdf"
        if not pdf_path.exists():
            raise self._fail(f"{self.binary} reported success but produced no {pdf_path.name}")

        logger.info(f"Compiled {pdf_path.name} in {duration:.1f}s")
        return CompilationResult(
            pdf_path=pdf_path, stdout=stdout, stderr=stderr, duration=duration
        )
