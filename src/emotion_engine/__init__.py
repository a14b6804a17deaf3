"""Real-time emotion inference from interaction behavior and webcam heuristics."""

__version__ = "0.1.0"
