"""Data models for ABL call stacks."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SourceLocation:
    """A file and a 1-based line number inside it."""

    path: Path
    line: int

    def label(self, root: Path | None = None) -> str:
        """Short ``file:line`` label, relative to ``root`` when possible."""
        display = self.path
        if root is not None:
            try:
                display = self.path.relative_to(root)
            except ValueError:
                pass
        return f"{display.as_posix()}:{self.line}"


@dataclass(frozen=True)
class StackFrame:
    """A single frame in an ABL call stack."""

    method_name: str | None  # Only present for "<method> <artifact> at line ..." frames
    artifact_id: str  # e.g. "MyClass.cls" or "OpenEdge.ABLUnit.Runner.ABLRunner"
    line_index: int  # 0-based; always textual line number minus one
    unit_id: str  # r-code name from the trailing parentheses
    raw: str

    @property
    def source_line(self) -> int:
        """The 1-based line number as it appeared in the trace."""
        return self.line_index + 1

    @property
    def description(self) -> str:
        """``[method ]artifact at line N``, the way the runtime printed it."""
        prefix = f"{self.method_name} " if self.method_name else ""
        return f"{prefix}{self.artifact_id} at line {self.source_line}"


@dataclass(frozen=True)
class ParsedCallStack:
    """A fully parsed ABL call stack.

    Frames keep the original top-to-bottom order: index 0 is the innermost
    call, where the failure was raised.
    """

    frames: tuple[StackFrame, ...]
    raw_text: str
    first_location: SourceLocation | None = None  # First frame whose artifact exists locally

    @property
    def innermost_frame(self) -> StackFrame:
        """The frame where the failure was raised (first frame)."""
        if not self.frames:
            raise ValueError("Call stack has no frames")
        return self.frames[0]

    @property
    def artifact_ids(self) -> tuple[str, ...]:
        """Distinct artifact names in first-seen order."""
        return tuple(dict.fromkeys(frame.artifact_id for frame in self.frames))

    def __len__(self) -> int:
        return len(self.frames)
