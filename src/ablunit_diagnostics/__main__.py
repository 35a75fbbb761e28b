"""Command-line entry point.

Renders the diagnostic for one ABLUnit test failure:

    ablunit-diagnostics -c ablunit.yaml -m "** Some failure. (132)" --callstack stack.txt

Exit codes: 0 rendered, 1 configuration or input error, 2 unparseable call stack.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog

from ablunit_diagnostics._version import __version__
from ablunit_diagnostics.models.diagnostic import FormattedDiagnostic

log = structlog.get_logger()

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_PARSE_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="ablunit-diagnostics",
        description="Render a source-mapped diagnostic for an ABLUnit test failure",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: built-in defaults and ABLUNIT_* variables)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format before the configuration is loaded (default: console)",
    )

    parser.add_argument(
        "--output",
        choices=["text", "markdown", "json"],
        default="text",
        help="Diagnostic output format (default: text)",
    )

    parser.add_argument(
        "-m",
        "--message",
        required=True,
        help="Failure message reported by the runtime",
    )

    stack = parser.add_mutually_exclusive_group(required=True)
    stack.add_argument(
        "--callstack",
        type=Path,
        help="File containing the failure call stack ('-' for stdin)",
    )
    stack.add_argument(
        "--callstack-text",
        help="Failure call stack as a string",
    )

    return parser.parse_args(argv)


def read_callstack(args: argparse.Namespace) -> str:
    """Call-stack text from the arguments, a file or stdin."""
    if args.callstack_text is not None:
        return str(args.callstack_text)
    if str(args.callstack) == "-":
        return sys.stdin.read()
    return Path(args.callstack).read_text(encoding="utf-8")


def format_output(diagnostic: FormattedDiagnostic, output: str) -> str:
    if output == "json":
        return json.dumps(diagnostic.to_dict(), indent=2) + "\n"
    if output == "markdown":
        return diagnostic.markdown
    return diagnostic.text


async def run(args: argparse.Namespace) -> int:
    """Render one diagnostic and print it.

    Returns:
        Exit code
    """
    from ablunit_diagnostics.config.loader import load_config
    from ablunit_diagnostics.core.context import DiagnosticContext
    from ablunit_diagnostics.utils.async_helpers import CallStackParseError
    from ablunit_diagnostics.utils.logging import configure_from_config

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(args.config), error=str(e))
        return EXIT_CONFIG_ERROR
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return EXIT_CONFIG_ERROR

    if args.config is not None:
        configure_from_config(config.logging, debug=args.debug)

    try:
        callstack = read_callstack(args)
    except OSError as e:
        log.error("callstack_unreadable", path=str(args.callstack), error=str(e))
        return EXIT_CONFIG_ERROR

    context = DiagnosticContext.from_config(config)

    try:
        diagnostic = await context.render(args.message, callstack)
    except CallStackParseError as e:
        log.error("callstack_invalid", error=str(e), line_number=e.line_number)
        print(str(e), file=sys.stderr)
        return EXIT_PARSE_ERROR

    sys.stdout.write(format_output(diagnostic, args.output))
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    from ablunit_diagnostics.utils.logging import configure_logging

    args = parse_args(argv)

    # Until a configuration file says otherwise, only warnings and errors are logged
    configure_logging(level="DEBUG" if args.debug else "WARNING", log_format=args.format)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        log.info("interrupted")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
