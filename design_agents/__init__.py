"""Design agent routing and task execution pipeline."""

__version__ = "0.1.0"
