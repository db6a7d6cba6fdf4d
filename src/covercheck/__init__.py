"""CoverCheck — grounded answers to South African medical aid questions."""

__version__ = "0.1.0"
