"""Abstract interface for debug-listing readers."""

from pathlib import Path
from typing import Protocol

from ..models.listing import DebugListingEntry


class DebugListingReader(Protocol):
    """Produces the compiled-line mapping for one artifact.

    The on-disk listing format belongs to the reader; the cache only consumes
    the in-memory ``DebugListingEntry`` it returns.
    """

    async def read(self, artifact: Path) -> DebugListingEntry:
        """
        Load the debug listing for an artifact.

        Args:
            artifact: Canonical path of the artifact's source file

        Returns:
            Mapping of compiled line numbers to original source locations

        Raises:
            DebugListingError: If the listing is missing, unreadable or malformed
        """
        ...
