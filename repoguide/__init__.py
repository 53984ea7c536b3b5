"""Generate OS-specific setup guides for public GitHub repositories."""

__version__ = "0.1.0"
