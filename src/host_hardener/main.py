"""CLI entry point for Host Hardener."""

import argparse
import signal
import sys
from pathlib import Path
from types import FrameType
from typing import List, NoReturn, Optional

import structlog

from host_hardener import __version__
from host_hardener.config import HardenerConfig
from host_hardener.exceptions import HardenerError, ProbeError, ReportWriteError
from host_hardener.executor import PlanExecutor
from host_hardener.log import configure_logging
from host_hardener.planner import PlanBuilder
from host_hardener.plugins import builtin_plugins
from host_hardener.registry import PluginRegistry
from host_hardener.report import Report, ReportSink
from host_hardener.system_info import SystemProbe
from host_hardener.utils.command import CommandExecutor
from host_hardener.utils.validation import Validator

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PROBE_FAILURE = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="host-hardener",
        description="Host Hardener - single-host Linux hardening and enumeration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Plugins (default order):
  package-update, package-cleanup, system-enumeration,
  account-lockdown, firewall-baseline, malware-scan

Examples:
  # Show what would run on this host
  host-hardener --dry-run

  # Full run, keep the firewall untouched
  sudo host-hardener --skip firewall-baseline

  # Custom report location and a tighter step budget
  sudo host-hardener --report-path /root/hardening.txt --timeout-seconds 900

Environment variables:
  HARDENER_REPORT_PATH      - Report file (default fh.txt)
  HARDENER_TIMEOUT_SECONDS  - Per-step timeout
  HARDENER_SKIP             - Comma-separated plugin names to skip
  FIREWALL_MANAGEMENT_PORT  - Port kept open by the firewall baseline
  ACCOUNTS_PROTECTED        - Comma-separated accounts never locked
  SCAN_REMOVE_INFECTED      - Delete infected files (true/false)

Exit codes: 0 success, 1 fatal step failure or report error, 2 probe failure.
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Build and print the plan without executing it",
    )

    parser.add_argument(
        "--skip",
        action="append",
        default=[],
        metavar="PLUGIN",
        help="Skip a plugin by name (repeatable)",
    )

    parser.add_argument(
        "--report-path",
        type=Path,
        help="Report file, appended to (default fh.txt)",
    )

    parser.add_argument(
        "--timeout-seconds",
        type=int,
        help="Per-step timeout in seconds",
    )

    parser.add_argument(
        "--management-port",
        type=int,
        help="TCP port the firewall baseline keeps open (default 22)",
    )

    parser.add_argument(
        "--keep-infected",
        action="store_true",
        help="Report infected files without deleting them",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> HardenerConfig:
    """Load configuration from the environment and apply CLI overrides.

    Raises:
        ValidationError: If an override is out of range
    """
    config = HardenerConfig.from_env()

    if args.report_path:
        config.run.report_path = args.report_path

    if args.timeout_seconds is not None:
        Validator.validate_timeout(args.timeout_seconds)
        config.run.timeout_seconds = args.timeout_seconds

    if args.skip:
        config.run.skip = list(dict.fromkeys(config.run.skip + args.skip))

    if args.management_port is not None:
        Validator.validate_port(args.management_port)
        config.firewall.management_port = args.management_port

    if args.keep_infected:
        config.scan.remove_infected = False

    return config


def print_summary(report: Report) -> None:
    """Print per-step outcomes and counts."""
    print("\n📋 Run Summary:")
    for outcome in report.outcomes:
        print(f"  • {outcome.describe()}")
    print(f"\n  {report.summary()}")


def main(argv: Optional[List[str]] = None) -> NoReturn:
    """Main entry point for CLI.

    Raises:
        SystemExit: Always exits with appropriate code
    """
    args = parse_args(argv)

    if not sys.platform.startswith("linux"):
        print("Error: This tool only supports Linux systems", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    try:
        config = load_config(args)
        configure_logging(config.logging, verbose=args.verbose, quiet=args.quiet)

        for issue in config.validate_config():
            logger.warning("config_issue", issue=issue)

        facts = SystemProbe().detect()

        runner = CommandExecutor(default_timeout=config.run.timeout_seconds)
        registry = PluginRegistry(builtin_plugins(runner, config))

        errors = Validator.validate_plugin_names(config.run.skip, registry.names())
        if errors:
            for error in errors:
                print(f"Error: {error}", file=sys.stderr)
            sys.exit(EXIT_PROBE_FAILURE)

        plan = PlanBuilder().build(facts, registry, skip=config.run.skip)

        if not args.quiet:
            print("╔══════════════════════════════════════╗")
            print("║  HOST HARDENER                       ║")
            print(f"║  Version {__version__:<28}║")
            print("╚══════════════════════════════════════╝\n")
            print(f"Detected: {facts.distro_id} ({facts.distro_family.value}), "
                  f"package manager {facts.to_dict()['package_manager']}, "
                  f"firewall {facts.to_dict()['firewall']}\n")

        if args.dry_run:
            print("🔍 DRY RUN - plan only, nothing executed\n")
            print(plan.describe())
            sys.exit(EXIT_OK)

        if not facts.is_root:
            print("Error: Please run this tool as root.", file=sys.stderr)
            sys.exit(EXIT_FAILURE)

        if not Validator.validate_path_writable(config.run.report_path):
            raise ReportWriteError(f"Report path is not writable: {config.run.report_path}")

        executor = PlanExecutor(
            ReportSink(config.run.report_path),
            runner,
            timeout_seconds=config.run.timeout_seconds,
        )

        def _request_abort(signum: int, frame: Optional[FrameType]) -> None:
            executor.request_abort()

        previous = {
            signum: signal.signal(signum, _request_abort)
            for signum in (signal.SIGINT, signal.SIGTERM)
        }
        try:
            report = executor.execute(plan)
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)

        if not args.quiet:
            print_summary(report)
            print(f"\n📄 Report written to {config.run.report_path}")

        if report.fatal_failure:
            print("\n❌ A fatal step failed; remaining steps were skipped", file=sys.stderr)
            sys.exit(EXIT_FAILURE)
        sys.exit(EXIT_OK)

    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted by user", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)

    except ProbeError as e:
        print(f"\n❌ Cannot determine system facts: {e}", file=sys.stderr)
        sys.exit(EXIT_PROBE_FAILURE)

    except ReportWriteError as e:
        print(f"\n❌ Report error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    except HardenerError as e:
        print(f"\n❌ Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    except Exception as e:
        print(f"\n❌ Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
