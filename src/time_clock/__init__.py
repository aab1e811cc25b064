"""Time Clock - employee clock-in/out, breaks and overtime analytics."""

__version__ = "0.1.0"
