"""Quire index lifecycle."""

from quire.index.manager import IndexManager, LoadReport

__all__ = ["IndexManager", "LoadReport"]
