"""External document compiler wrapper."""

from .tectonic import CompilationResult, TectonicCompiler

__all__ = ["TectonicCompiler", "CompilationResult"]
