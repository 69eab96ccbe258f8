"""Search GitHub repositories beyond the 1000 result window and store them."""

__version__ = "0.1.0"
