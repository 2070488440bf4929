"""PC Builder Expert consultation client."""

__version__ = "0.3.0"
