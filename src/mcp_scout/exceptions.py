"""Exceptions raised inside mcp-scout.

Public operations convert network failures into typed results; these
exceptions only cross internal seams.
"""


class ScoutError(Exception):
    """Base class for mcp-scout errors."""


class CatalogSourceError(ScoutError):
    """A catalog source could not produce a server list."""
