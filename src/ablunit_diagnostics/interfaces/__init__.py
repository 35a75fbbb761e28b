"""Protocol definitions for pluggable collaborators."""

from .listing import DebugListingReader

__all__ = ["DebugListingReader"]
