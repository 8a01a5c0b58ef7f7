# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Command-line entry point for the gear cron dispatcher.

    cron-dispatch run <frequency>
    cron-dispatch run-user <tenant> <frequency>
"""

import argparse
import sys
from typing import Any, Optional, Sequence
from src.core.config import DispatcherConfig, load_config
from src.core.exceptions import ConfigError, UnsupportedFormatError, UsageError
from src.core.execution import (
    FanOutDispatcher,
    FrequencyGate,
    PrivilegedLauncher,
    SecurityContextResolver,
    SelinuxRunAs,
    TenantEnumerator,
    resolve_runtime_format,
)
from src.core.models.tenant import is_valid_frequency
from src.core.observability import (
    add_syslog_handler,
    get_logger,
    initialize_logging,
    syslog_tag,
)

PROG = "cron-dispatch"
USAGE = f"Usage: {PROG} {{run <frequency>|run-user <tenant> <frequency>}}"
EXIT_OK = 0
EXIT_USAGE = 1
EXIT_MISSING_ARGS = 22

logger = get_logger(__name__)


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError with a per-command exit code."""

    def __init__(self, *args: Any, usage_exit_code: int = EXIT_USAGE, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.usage_exit_code = usage_exit_code

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message, exit_code=self.usage_exit_code)


def build_parser() -> argparse.ArgumentParser:
    """Build the command router."""
    parser = _Parser(prog=PROG, usage=USAGE, description="Run tenant cron jobs.")
    commands = parser.add_subparsers(dest="command", required=True, metavar="command")

    run = commands.add_parser(
        "run",
        help="Run <frequency> jobs for every tenant on the node.",
        usage_exit_code=EXIT_USAGE,
    )
    run.add_argument("frequency")

    run_user = commands.add_parser(
        "run-user",
        help="Run <frequency> jobs for a single tenant.",
        usage_exit_code=EXIT_MISSING_ARGS,
    )
    run_user.add_argument("tenant")
    run_user.add_argument("frequency")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse and validate the command line.

    :param argv: Arguments without the program name.
    :returns: Parsed namespace with ``command``, ``frequency`` and maybe ``tenant``.
    :raises UsageError: On malformed input.
    """
    args = build_parser().parse_args(argv)
    if not is_valid_frequency(args.frequency):
        code = EXIT_MISSING_ARGS if args.command == "run-user" else EXIT_USAGE
        raise UsageError(f"invalid frequency name: {args.frequency!r}", exit_code=code)
    return args


def build_dispatcher(config: DispatcherConfig) -> FanOutDispatcher:
    """Wire the dispatcher and its collaborators from configuration."""
    enumerator = TenantEnumerator(config)
    launcher = PrivilegedLauncher(
        config=config,
        resolver=SecurityContextResolver(config),
        run_as=SelinuxRunAs(
            runcon_path=config.runcon_path,
            path_env=config.runner_path_env,
        ),
    )
    return FanOutDispatcher(
        config=config,
        gate=FrequencyGate(config),
        launcher=launcher,
        enumerator=enumerator,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point.

    :param argv: Arguments without the program name, defaults to ``sys.argv[1:]``.
    :returns: Process exit code.
    """
    try:
        args = parse_args(sys.argv[1:] if argv is None else argv)
    except UsageError as exc:
        print(USAGE, file=sys.stderr)
        print(f"{PROG}: {exc}", file=sys.stderr)
        return exc.exit_code

    try:
        config = load_config()
    except ConfigError as exc:
        print(f"{PROG}: {exc}", file=sys.stderr)
        return EXIT_USAGE

    initialize_logging(level=config.log_level, log_format=config.log_format)
    if config.syslog_enabled:
        add_syslog_handler(
            address=config.syslog_address,
            facility=config.syslog_facility,
            tag=syslog_tag(args.frequency),
        )

    try:
        runtime_format = resolve_runtime_format(config)
    except UnsupportedFormatError as exc:
        logger.error(f"Cannot dispatch {args.frequency} cron run: {exc}")
        return EXIT_USAGE

    dispatcher = build_dispatcher(config)
    if args.command == "run":
        tenants = dispatcher.enumerator.list_tenants(runtime_format)
        dispatcher.run(args.frequency, tenants)
    else:
        dispatcher.run_user(args.tenant, args.frequency, runtime_format)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
