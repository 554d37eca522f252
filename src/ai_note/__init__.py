"""ai-note: todo extraction and reconciliation for plain-text and markdown notes."""

__version__ = "0.1.0"
