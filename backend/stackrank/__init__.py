"""Priority signal classification and stack ranking."""

__version__ = "1.0.0"
