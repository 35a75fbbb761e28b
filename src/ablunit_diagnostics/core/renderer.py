"""Failure diagnostic rendering.

This module implements the DiagnosticRenderer class that turns a test
failure (message plus raw call stack) into a source-mapped report:

1. Parse the call stack; a malformed line aborts the whole diagnostic
2. Import the debug listing of every distinct non-framework artifact and
   wait for all imports to settle (failed imports are not errors)
3. Append the catalog help text for the message number, if any
4. Render one line per frame, in original order, with the resolved include
   file and line where a mapping exists
"""

from __future__ import annotations

import html
import json
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

import structlog

from ablunit_diagnostics.core.artifacts import ArtifactResolver
from ablunit_diagnostics.core.callstack_parser import CallStackParser
from ablunit_diagnostics.core.debug_listing import DebugListingCache
from ablunit_diagnostics.core.message_catalog import MessageCatalog, extract_message_code
from ablunit_diagnostics.models.callstack import SourceLocation, StackFrame
from ablunit_diagnostics.models.catalog import PARAGRAPH_BREAK
from ablunit_diagnostics.models.diagnostic import FormattedDiagnostic, RenderedFrame
from ablunit_diagnostics.utils.async_helpers import CallStackParseError
from ablunit_diagnostics.utils.logging import LogEventNames, bind_context, unbind_context
from ablunit_diagnostics.utils.metrics import MetricsRegistry, Timer, get_metrics

log = structlog.get_logger()

# Characters editor command-link arguments leave unescaped
_URI_COMPONENT_SAFE = "-_.!~*'()"
_LINK_TEXT_SPECIALS = re.compile(r"[\\\[\]()]")


@dataclass(frozen=True)
class RenderOptions:
    """Presentation settings for rendered frames."""

    innermost_marker: str = "--> "
    indent_marker: str = "    "
    heading: str = "ABL Call Stack"
    open_command: str = "_ablunit.openStackTrace"


def markdown_link_text(label: str) -> str:
    """Escape ``label`` for use as link text inside the HTML code span."""
    return _LINK_TEXT_SPECIALS.sub(r"\\\g<0>", html.escape(label, quote=False))


def command_link(command: str, location: SourceLocation) -> str:
    """Editor command URI that opens ``location``."""
    argument = json.dumps(f"{location.path.as_uri()}&{location.line}")
    return f"command:{command}?{quote(argument, safe=_URI_COMPONENT_SAFE)}"


class DiagnosticRenderer:
    """Builds failure diagnostics from failure messages and call stacks.

    Example:
        renderer = DiagnosticRenderer(resolver, listings, catalog)
        diagnostic = await renderer.render(failure.message, failure.callstack)
        print(diagnostic.text)
    """

    def __init__(
        self,
        resolver: ArtifactResolver,
        listings: DebugListingCache,
        catalog: MessageCatalog,
        options: RenderOptions | None = None,
        parser: CallStackParser | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._resolver = resolver
        self._listings = listings
        self._catalog = catalog
        self._options = options or RenderOptions()
        self._parser = parser or CallStackParser(resolver)
        self._metrics = metrics or get_metrics()

    async def render(self, failure_message: str, raw_callstack: str) -> FormattedDiagnostic:
        """Render a failure diagnostic.

        Args:
            failure_message: Failure message reported by the runtime
            raw_callstack: Call-stack text reported with the failure

        Returns:
            FormattedDiagnostic with frames in original order

        Raises:
            CallStackParseError: If a call-stack line cannot be parsed
        """
        bind_context(message_code=extract_message_code(failure_message))
        try:
            return await self._render(failure_message, raw_callstack)
        finally:
            unbind_context("message_code", "innermost_artifact")

    async def _render(self, failure_message: str, raw_callstack: str) -> FormattedDiagnostic:
        with Timer(self._metrics.render_duration):
            try:
                stack = self._parser.parse(raw_callstack)
            except CallStackParseError:
                self._metrics.callstack_parse_errors.inc()
                raise

            if stack.frames:
                bind_context(innermost_artifact=stack.innermost_frame.artifact_id)

            artifact_paths: dict[str, Path] = {
                artifact_id: self._resolver.resolve(artifact_id)
                for artifact_id in stack.artifact_ids
                if not self._resolver.is_framework(artifact_id)
            }
            await self._listings.import_all(artifact_paths.values())

            catalog_text = self._catalog_text(failure_message)

            frames = tuple(
                self._render_frame(frame, index == 0, artifact_paths.get(frame.artifact_id))
                for index, frame in enumerate(stack.frames)
            )

        text, markdown = self._assemble(failure_message, catalog_text, frames)

        self._metrics.diagnostics_rendered.inc()
        log.info(
            LogEventNames.DIAGNOSTIC_RENDERED,
            frames_count=len(frames),
            resolved_count=sum(1 for frame in frames if frame.location is not None),
            artifacts_count=len(artifact_paths),
            has_catalog_text=catalog_text is not None,
        )

        return FormattedDiagnostic(
            message=failure_message,
            catalog_text=catalog_text,
            frames=frames,
            first_location=stack.first_location,
            text=text,
            markdown=markdown,
        )

    def _catalog_text(self, failure_message: str) -> str | None:
        entry = self._catalog.lookup_message(failure_message)
        if entry is None or not entry.extended_segments:
            return None
        # The first segment repeats the message already shown
        return entry.extended_text()

    def _render_frame(
        self,
        frame: StackFrame,
        is_innermost: bool,
        artifact_path: Path | None,
    ) -> RenderedFrame:
        framework = self._resolver.is_framework(frame.artifact_id)
        location: SourceLocation | None = None
        if not framework and artifact_path is not None:
            location = self._listings.get_source_line(artifact_path, frame.source_line)

        if is_innermost:
            marker = self._options.innermost_marker
            marker_markdown = html.escape(marker)
        else:
            marker = self._options.indent_marker
            marker_markdown = html.escape(marker).replace(" ", "&nbsp;")

        text = f"{marker}{frame.description}"
        markdown = f"<code>{marker_markdown}{html.escape(frame.description)}"

        if location is not None:
            label = f"{self._resolver.display_path(location.path)}:{location.line}"
            text = f"{text} ({label})"
            link = command_link(self._options.open_command, location)
            markdown = f"{markdown} ([{markdown_link_text(label)}]({link}))"

        return RenderedFrame(
            frame=frame,
            is_innermost=is_innermost,
            framework=framework,
            location=location,
            text=text,
            markdown=f"{markdown}</code>",
        )

    def _assemble(
        self,
        failure_message: str,
        catalog_text: str | None,
        frames: tuple[RenderedFrame, ...],
    ) -> tuple[str, str]:
        header = failure_message
        if catalog_text:
            header = f"{header}{PARAGRAPH_BREAK}{catalog_text}"

        heading = self._options.heading
        text = f"{header}{PARAGRAPH_BREAK}{heading}{PARAGRAPH_BREAK}" + "".join(
            f"{frame.text}\n" for frame in frames
        )
        markdown = f"{header}{PARAGRAPH_BREAK}**{heading}**{PARAGRAPH_BREAK}" + "".join(
            f"{frame.markdown}<br>\n" for frame in frames
        )
        return text, markdown
