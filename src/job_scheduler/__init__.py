"""Single-process job scheduler: queue-fed dispatcher with timed executors."""

__version__ = "0.1.0"
