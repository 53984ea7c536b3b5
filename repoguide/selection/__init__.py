"""File classification and budgeted selection."""

from .selector import FileSelector, estimate_tokens, select_files

__all__ = ["FileSelector", "estimate_tokens", "select_files"]
