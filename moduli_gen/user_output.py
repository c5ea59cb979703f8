"""
User Output Abstraction

Provides a unified interface for user-facing output, separating
operator messages (progress lines, remediation text, run summary)
from debug logging.
"""

import logging
import sys
from typing import TYPE_CHECKING, List, Optional, TextIO

if TYPE_CHECKING:
    from .orchestrator import RunReport


class UserOutput:
    """
    Unified handler for user-facing output.

    All user messages go to stdout/stderr, while debug information goes
    to the logger.

    Usage:
        output = UserOutput()
        output.info("Generating candidate primes of bitsize 3072")
        output.warning("No moduli for 4096 bits")
        output.error("Cannot create output file")
    """

    def __init__(
        self,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        quiet: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize output handler.

        Args:
            stdout: Output stream for normal messages (default: sys.stdout)
            stderr: Output stream for errors (default: sys.stderr)
            quiet: If True, suppress all non-error output
            logger: Optional logger for debug messages
        """
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        self.quiet = quiet
        self.logger = logger or logging.getLogger(__name__)

    def info(self, message: str, log: bool = False) -> None:
        """
        Print informational message to user.

        Args:
            message: Message to display
            log: If True, also log to info logger
        """
        if not self.quiet:
            print(f"INFO:  {message}", file=self.stdout)
        if log:
            self.logger.info(message)

    def warning(self, message: str, log: bool = True) -> None:
        if not self.quiet:
            print(f"WARNING:  {message}", file=self.stdout)
        if log:
            self.logger.warning(message)

    def error(self, message: str, log: bool = True) -> None:
        """
        Print error message to user (always shown, even in quiet mode).

        Args:
            message: Error message to display
            log: If True, also log to error logger
        """
        print(f"ERROR:  {message}", file=self.stderr)
        if log:
            self.logger.error(message)

    def text(self, block: str) -> None:
        """Print a preformatted block to stderr (always shown)."""
        print(block, file=self.stderr)

    def commands(self, title: str, commands: List[List[str]]) -> None:
        """Print a list of command lines (dry runs)."""
        if self.quiet:
            return
        print(title, file=self.stdout)
        for cmd in commands:
            print(f"  {' '.join(cmd)}", file=self.stdout)

    def run_summary(self, report: 'RunReport') -> None:
        """
        Print the end-of-run summary: per-stage counts, skipped bit sizes
        and the location of the merged file.
        """
        if not self.quiet:
            print("\nRun Summary:", file=self.stdout)
            for stage, results in report.stage_results.items():
                succeeded = sum(1 for r in results if r.succeeded)
                failed = len(results) - succeeded
                print(f"  {stage.value}: {succeeded} succeeded, {failed} failed", file=self.stdout)
            print(f"  Merged bit sizes: {', '.join(str(b) for b in report.merged) or 'none'}",
                  file=self.stdout)

        for bits, reason in sorted(report.skipped.items()):
            self.warning(str(reason))

        self.info(f"New moduli data saved to file {report.output_path.resolve()}", log=True)


# Global default instance for convenience
_default_output: Optional[UserOutput] = None


def get_output() -> UserOutput:
    """Get the default UserOutput instance, creating it on first use."""
    global _default_output
    if _default_output is None:
        _default_output = UserOutput()
    return _default_output


def set_output(output: UserOutput) -> None:
    """
    Set the default UserOutput instance.

    Args:
        output: UserOutput instance to use as default
    """
    global _default_output
    _default_output = output
