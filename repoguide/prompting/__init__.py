"""Prompt construction for setup-guide generation."""

from .builder import PromptBuilder

__all__ = ["PromptBuilder"]
