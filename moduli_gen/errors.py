"""
Exception hierarchy for moduli generation runs.

Run-fatal errors (PreflightError, MergeIOError, ConfigError, RunCancelled)
propagate to the entry script, which maps them to exit codes. Per-job
errors (JobLaunchError, JobExecutionError, ArtifactMissingError) are
recorded on results and never abort sibling work.
"""
from typing import Optional


class ModuliError(Exception):
    """Base class for all moduli generation errors."""

    exit_code = 1


class ConfigError(ModuliError):
    """Invalid configuration values."""

    exit_code = 3


class PreflightError(ModuliError):
    """The host entropy pool is below the configured minimum."""

    exit_code = 1

    def __init__(self, message: str, entropy: Optional[int] = None,
                 minimum: int = 2000, maximum: int = 4096,
                 entropy_path: str = "/proc/sys/kernel/random/entropy_avail"):
        super().__init__(message)
        self.entropy = entropy
        self.minimum = minimum
        self.maximum = maximum
        self.entropy_path = entropy_path

    def remediation(self) -> str:
        """Operator-facing instructions for raising the entropy pool."""
        lines = ["", "ERROR:  The kernel entropy pool is currently low."]
        if self.entropy is not None:
            lines.append(f"        ({self.entropy} bits out of a potential {self.maximum} bits).")
        else:
            lines.append(f"        ({self})")
        lines.extend([
            "",
            "Please install a entropy-harvesting daemon such as:",
            "",
            "Havaged   - http://www.issihosts.com/haveged/",
            "Rng-Tools - https://github.com/nhorman/rng-tools",
            "",
            "Please check the package management system for your",
            "OS (apt for Debian/Ubuntu, yum for RHEL/Centos) as the",
            "entropy-gathering daemons may be available that way.",
            "",
            "Once installed, you can check the entropy pool by running:",
            "",
            f"   cat {self.entropy_path}",
            "",
            f"Entropy should be at least {self.minimum} bits.",
            "",
        ])
        return "\n".join(lines)


class JobLaunchError(ModuliError):
    """The external command could not be started."""

    def __init__(self, stage: str, bits: int, reason: str):
        super().__init__(f"{stage} job for {bits} bits could not be started: {reason}")
        self.stage = stage
        self.bits = bits


class JobExecutionError(ModuliError):
    """The external command ran and exited with a non-zero status."""

    def __init__(self, stage: str, bits: int, returncode: int):
        super().__init__(f"{stage} job for {bits} bits exited with status {returncode}")
        self.stage = stage
        self.bits = bits
        self.returncode = returncode


class MergeIOError(ModuliError):
    """The merged output file could not be created or written."""

    exit_code = 2


class ArtifactMissingError(ModuliError):
    """A size class has no usable result artifact at merge time."""

    def __init__(self, bits: int, reason: str):
        super().__init__(f"No moduli for {bits} bits: {reason}")
        self.bits = bits


class RunCancelled(ModuliError):
    """The run was stopped by the operator before it could merge."""

    exit_code = 130
