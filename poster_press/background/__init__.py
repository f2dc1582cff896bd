"""
Background job processing system.

Exports:
    - BackgroundWorker: Sequential job processor
    - setup_signal_handlers: Graceful shutdown signal handling
    - WorkerLifecycle: Startup recovery and shutdown coordination
"""

from poster_press.background.lifecycle import StartupError, WorkerLifecycle
from poster_press.background.signals import setup_signal_handlers
from poster_press.background.worker import BackgroundWorker

__all__ = ["BackgroundWorker", "setup_signal_handlers", "WorkerLifecycle", "StartupError"]
