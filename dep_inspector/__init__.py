"""Dep Inspector: capability and lint differences between versions of a Go dependency."""

__version__ = "0.1.0"
