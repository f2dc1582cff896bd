"""poster-press: queue-driven LaTeX poster render worker."""

__version__ = "0.1.0"
