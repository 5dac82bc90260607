"""Provider availability and booking reservation engine."""

__version__ = "0.1.0"
