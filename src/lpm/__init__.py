"""lpm - Lightweight process manager."""

__version__ = "0.1.0"
