#!/usr/bin/env python3
"""
gen_moduli - Generate a new OpenSSH moduli file

The stock /etc/ssh/moduli file is shared by every install of a given
OpenSSH release, which gives well-resourced attackers a strong incentive
to precompute against those particular primes. This tool generates and
screens a private set with ssh-keygen, spreading the work over every
physical core at idle priority, and merges the results into a single
moduli.<timestamp> file suitable for replacing /etc/ssh/moduli.

Exit codes:
    0   run completed (some bit sizes may have been skipped)
    1   entropy pool too low
    2   work directory or output file could not be created
    3   invalid configuration or unusable log file
    130 interrupted
"""

import signal
import sys
import threading
from pathlib import Path

from moduli_gen.arg_parser import apply_overrides, create_parser
from moduli_gen.errors import ConfigError, ModuliError, PreflightError
from moduli_gen.orchestrator import Orchestrator, setup_logging
from moduli_gen.typed_config import TypedConfigLoader
from moduli_gen.user_output import UserOutput, set_output

DEFAULT_CONFIG = 'moduli.yaml'


def install_stop_handlers(stop_event: threading.Event, output: UserOutput) -> dict:
    """
    Turn SIGINT/SIGTERM into a stop request instead of an abrupt exit.

    Returns:
        The previous handlers, keyed by signal number
    """
    def handle_signal(signum, frame):
        if not stop_event.is_set():
            output.error("Shutdown requested, stopping running jobs...", log=False)
        stop_event.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handle_signal)
    return previous


def main(argv=None) -> int:
    """Main entry point for the moduli generator."""
    parser = create_parser()
    args = parser.parse_args(argv)

    output = UserOutput(quiet=args.quiet)
    set_output(output)

    config_path = args.config
    if config_path is None and Path(DEFAULT_CONFIG).exists():
        config_path = DEFAULT_CONFIG

    try:
        config = apply_overrides(TypedConfigLoader().load(config_path), args)
    except ConfigError as e:
        output.error(str(e), log=False)
        return e.exit_code

    try:
        setup_logging(config.logging)
    except OSError as e:
        output.error(f"Cannot open log file {config.logging.file}: {e}", log=False)
        return ConfigError.exit_code

    stop_event = threading.Event()
    orchestrator = Orchestrator(config, output=output, stop_event=stop_event)

    if args.dry_run:
        for stage, commands in orchestrator.planned_commands().items():
            output.commands(f"{stage.value} stage:", commands)
        return 0

    previous_handlers = install_stop_handlers(stop_event, output)

    try:
        report = orchestrator.run()
    except PreflightError as e:
        output.text(e.remediation())
        return e.exit_code
    except ModuliError as e:
        output.error(str(e))
        return e.exit_code
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)

    output.run_summary(report)
    if report.skipped:
        failed = len(report.skipped)
        output.warning(f"{failed} of {len(report.size_classes)} bit size(s) missing from "
                       f"{report.output_path.name}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
