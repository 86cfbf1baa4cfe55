"""Thread Wrangler - move, copy and attach chat threads between channels."""

__version__ = "0.3.0"
