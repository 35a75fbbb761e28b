"""Parser for ABL call stacks.

This module implements the CallStackParser class that turns the call-stack
text reported by the ABLUnit runtime into structured frames. Two line
formats are recognised, tried in order:

- ``<method> <artifact> at line <N>  (<unit>)``, e.g.
  ``RunTests OpenEdge.ABLUnit.Runner.ABLRunner at line 149  (OpenEdge/ABLUnit/Runner/ABLRunner.r)``
- ``<artifact> at line <N>  (<unit>)``, e.g.
  ``ABLUnitCore.p at line 79  (ABLUnitCore.r)``

A line matching neither aborts the whole parse, so frame indices always line
up with the original text.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import NamedTuple

import structlog

from ablunit_diagnostics.core.artifacts import ArtifactResolver
from ablunit_diagnostics.models.callstack import ParsedCallStack, SourceLocation, StackFrame
from ablunit_diagnostics.utils.async_helpers import CallStackParseError
from ablunit_diagnostics.utils.logging import LogEventNames

log = structlog.get_logger()


class FrameGrammar(NamedTuple):
    """One accepted call-stack line format."""

    name: str
    pattern: re.Pattern[str]


class CallStackParser:
    """Parser for ABL call stacks.

    Responsibilities:
    - Parse each call-stack line into a StackFrame
    - Reject malformed lines without partial recovery
    - Find the first frame whose artifact exists locally

    Example:
        parser = CallStackParser(ArtifactResolver(workspace_root))
        stack = parser.parse(failure_callstack)
        print(stack.innermost_frame.description)
    """

    # Line numbers are decimal integers >= 1; the unit must end the line
    _TAIL = r" at line (?P<line>0*[1-9]\d*) +\((?P<unit>\S+)\)\s*$"

    GRAMMARS: tuple[FrameGrammar, ...] = (
        FrameGrammar("method", re.compile(r"^(?P<method>\S+) (?P<artifact>\S+)" + _TAIL)),
        FrameGrammar("program", re.compile(r"^(?P<artifact>\S+)" + _TAIL)),
    )

    def __init__(self, resolver: ArtifactResolver | None = None) -> None:
        """Initialize the CallStackParser.

        Args:
            resolver: Used to test whether frame artifacts exist locally.
                Defaults to a resolver rooted at the current directory.
        """
        self._resolver = resolver or ArtifactResolver(Path.cwd())

    def parse_line(self, raw: str) -> StackFrame:
        """Parse a single call-stack line.

        Args:
            raw: One line of call-stack text, without line terminator

        Returns:
            StackFrame for the line

        Raises:
            CallStackParseError: If the line matches neither format
        """
        for grammar in self.GRAMMARS:
            match = grammar.pattern.match(raw)
            if match is None:
                continue

            groups = match.groupdict()
            return StackFrame(
                method_name=groups.get("method"),
                artifact_id=groups["artifact"],
                line_index=int(groups["line"]) - 1,
                unit_id=groups["unit"],
                raw=raw,
            )

        raise CallStackParseError(raw)

    def parse(self, text: str) -> ParsedCallStack:
        """Parse a complete call stack.

        Args:
            text: Call-stack text with LF or CRLF line endings

        Returns:
            ParsedCallStack with frames in original order

        Raises:
            CallStackParseError: If any line matches neither format
        """
        lines = text.replace("\r", "").split("\n")

        # A trailing line terminator leaves empty lines behind; those are consumed
        while lines and not lines[-1].strip():
            lines.pop()

        frames: list[StackFrame] = []
        for line_number, line in enumerate(lines, start=1):
            try:
                frames.append(self.parse_line(line))
            except CallStackParseError as e:
                log.warning(
                    LogEventNames.CALLSTACK_PARSE_ERROR,
                    line_number=line_number,
                    raw=line,
                )
                raise CallStackParseError(e.raw, line_number) from None

        first_location = self._find_first_location(frames)

        log.debug(
            LogEventNames.CALLSTACK_PARSED,
            frames_count=len(frames),
            first_location=first_location.label() if first_location else None,
        )

        return ParsedCallStack(
            frames=tuple(frames),
            raw_text=text,
            first_location=first_location,
        )

    def _find_first_location(self, frames: list[StackFrame]) -> SourceLocation | None:
        """First frame, in order, whose artifact exists on the local file system."""
        for frame in frames:
            path = self._resolver.find(frame.artifact_id)
            if path is not None:
                return SourceLocation(path=path, line=frame.source_line)

        if frames:
            log.debug(LogEventNames.FIRST_LOCATION_MISSING, frames_count=len(frames))
        return None
