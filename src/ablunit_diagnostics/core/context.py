"""Per-session wiring of the diagnostics collaborators."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from ablunit_diagnostics.config.schema import DiagnosticsConfig
from ablunit_diagnostics.core.artifacts import ArtifactResolver
from ablunit_diagnostics.core.debug_listing import DebugListingCache, SourceExpansionReader
from ablunit_diagnostics.core.message_catalog import MessageCatalog
from ablunit_diagnostics.core.renderer import DiagnosticRenderer, RenderOptions
from ablunit_diagnostics.core.runtime import RuntimeResolver
from ablunit_diagnostics.models.diagnostic import FormattedDiagnostic
from ablunit_diagnostics.utils.async_helpers import RuntimeNotFoundError
from ablunit_diagnostics.utils.metrics import MetricsRegistry, get_metrics

log = structlog.get_logger()


@dataclass
class DiagnosticContext:
    """Collaborators shared by every diagnostic rendered in one session.

    The debug-listing cache lives here rather than in module state, so
    separate contexts never see each other's entries.
    """

    resolver: ArtifactResolver
    listings: DebugListingCache
    catalog: MessageCatalog
    renderer: DiagnosticRenderer
    metrics: MetricsRegistry

    @classmethod
    def create(
        cls,
        resolver: ArtifactResolver,
        listings: DebugListingCache | None = None,
        catalog: MessageCatalog | None = None,
        options: RenderOptions | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> DiagnosticContext:
        """Build a context, filling in default collaborators."""
        metrics = metrics or get_metrics()
        if listings is None:
            listings = DebugListingCache(SourceExpansionReader(resolver), metrics)
        catalog = catalog if catalog is not None else MessageCatalog(metrics=metrics)
        renderer = DiagnosticRenderer(
            resolver, listings, catalog, options=options, metrics=metrics
        )
        return cls(
            resolver=resolver,
            listings=listings,
            catalog=catalog,
            renderer=renderer,
            metrics=metrics,
        )

    @classmethod
    def from_config(
        cls,
        config: DiagnosticsConfig,
        metrics: MetricsRegistry | None = None,
    ) -> DiagnosticContext:
        """Build a context from validated configuration.

        A runtime that cannot be located only costs the message catalog.
        """
        metrics = metrics or get_metrics()
        workspace = config.workspace

        resolver = ArtifactResolver(
            workspace.root,
            propath=workspace.propath_dirs(),
            framework_prefixes=config.framework.prefixes,
            reserved_artifacts=config.framework.reserved,
        )
        reader = SourceExpansionReader(
            resolver,
            max_include_depth=config.listing.max_include_depth,
            encoding=config.listing.encoding,
        )

        dlc = config.runtime.dlc
        if dlc is None:
            try:
                dlc = RuntimeResolver(config.runtime.runtimes).resolve(workspace.root)
            except RuntimeNotFoundError as e:
                log.info("catalog_unavailable", error=str(e))

        catalog = MessageCatalog.load_default(dlc, config.runtime.catalog_cache, metrics)

        render = config.render
        options = RenderOptions(
            innermost_marker=render.innermost_marker,
            indent_marker=render.indent_marker,
            heading=render.heading,
            open_command=render.open_command,
        )

        return cls.create(
            resolver,
            listings=DebugListingCache(reader, metrics),
            catalog=catalog,
            options=options,
            metrics=metrics,
        )

    async def render(self, failure_message: str, raw_callstack: str) -> FormattedDiagnostic:
        """Render a failure diagnostic with this context's collaborators."""
        return await self.renderer.render(failure_message, raw_callstack)
