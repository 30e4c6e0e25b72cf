"""todostore - a versioned, undoable state store for a todo application."""

__version__ = "0.1.0"
