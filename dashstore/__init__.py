"""dashstore: versioned dashboard persistence and alert condition evaluation."""

__version__ = "0.1.0"
