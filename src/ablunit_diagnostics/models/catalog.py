"""Data models for the runtime message catalog."""

from dataclasses import dataclass

# Catalog text stores paragraph breaks as the two characters backslash + "n"
ESCAPED_NEWLINE = "\\n"
PARAGRAPH_BREAK = "\n\n"


@dataclass(frozen=True)
class MessageCatalogEntry:
    """A numbered runtime message and its help text."""

    code: int
    segments: tuple[str, ...]

    @property
    def short_message(self) -> str:
        """First segment: the message as the runtime prints it."""
        return self.segments[0] if self.segments else ""

    @property
    def extended_segments(self) -> tuple[str, ...]:
        """Help segments after the short message, with paragraph breaks expanded."""
        return tuple(
            segment.replace(ESCAPED_NEWLINE, PARAGRAPH_BREAK) for segment in self.segments[1:]
        )

    def extended_text(self) -> str:
        """Extended help segments joined by blank lines."""
        return PARAGRAPH_BREAK.join(self.extended_segments)
