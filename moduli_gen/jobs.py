"""
Job model and ssh-keygen command construction.

A job is one (stage, bit size) pair. Commands are built here and only
here so the generation and screening invocations stay consistent
across the scheduler, dry runs and tests.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from .errors import ModuliError

# OpenSSH refuses to generate moduli above this size.
SSH_KEYGEN_MAX_BITS = 8192

SYNTAXES = ("legacy", "modern")


class Stage(Enum):
    """The two sequential phases of a run."""
    GENERATE = "generate"
    VALIDATE = "validate"


class JobState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def compute_size_classes(min_bits: int, max_bits: int, bit_delta: int) -> List[int]:
    """
    Compute the ascending list of bit sizes for a run.

    The range is inclusive of max_bits when it falls on a step, e.g.
    (3072, 4096, 1024) -> [3072, 4096] and (3072, 3500, 1024) -> [3072].

    Raises:
        ValueError: If the step is not positive
    """
    if bit_delta <= 0:
        raise ValueError(f"Bit delta must be positive, got {bit_delta}")
    return list(range(min_bits, max_bits + 1, bit_delta))


class ArtifactSet:
    """Deterministic artifact names for each bit size."""

    def __init__(self, work_dir: Union[str, Path] = ".", output_prefix: str = "moduli"):
        self.work_dir = Path(work_dir)
        self.output_prefix = output_prefix

    def candidate(self, bits: int) -> Path:
        return self.work_dir / f"bit_{bits}.candidate"

    def result(self, bits: int) -> Path:
        return self.work_dir / f"bit_{bits}.moduli"

    def output(self, timestamp: int) -> Path:
        return self.work_dir / f"{self.output_prefix}.{timestamp}"


def build_generate_command(ssh_keygen: str, bits: int, candidate: Path,
                           syntax: str = "legacy") -> List[str]:
    """
    Build the candidate generation command for one bit size.

    legacy: ssh-keygen -q -G <candidate> -b <bits>
    modern: ssh-keygen -q -M generate -O bits=<bits> <candidate>
    """
    if syntax == "modern":
        return [ssh_keygen, "-q", "-M", "generate", "-O", f"bits={bits}", str(candidate)]
    return [ssh_keygen, "-q", "-G", str(candidate), "-b", str(bits)]


def build_validate_command(ssh_keygen: str, iterations: int, candidate: Path,
                           result: Path, syntax: str = "legacy") -> List[str]:
    """
    Build the candidate screening command for one bit size.

    legacy: ssh-keygen -q -T <result> -a <iterations> -f <candidate>
    modern: ssh-keygen -q -M screen -O prime-tests=<iterations> -f <candidate> <result>
    """
    if syntax == "modern":
        return [ssh_keygen, "-q", "-M", "screen", "-O", f"prime-tests={iterations}",
                "-f", str(candidate), str(result)]
    return [ssh_keygen, "-q", "-T", str(result), "-a", str(iterations), "-f", str(candidate)]


@dataclass
class Job:
    """One scheduled unit of work: a stage applied to a single bit size."""
    stage: Stage
    bits: int
    command: List[str]
    inputs: List[Path] = field(default_factory=list)
    outputs: List[Path] = field(default_factory=list)
    state: JobState = JobState.PENDING

    @property
    def name(self) -> str:
        return f"{self.stage.value}-{self.bits}"


@dataclass
class JobResult:
    """Outcome of one job. Failures carry the error instead of raising it."""
    stage: Stage
    bits: int
    state: JobState
    returncode: Optional[int] = None
    output: str = ""
    error: Optional[ModuliError] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.state == JobState.SUCCEEDED

    @property
    def duration(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at


class JobFactory:
    """Creates Job objects for a stage and bit size from run settings."""

    def __init__(self, artifacts: ArtifactSet, ssh_keygen: str = "ssh-keygen",
                 iterations: int = 100, syntax: str = "legacy"):
        if syntax not in SYNTAXES:
            raise ValueError(f"Syntax must be one of {', '.join(SYNTAXES)}, got {syntax}")
        self.artifacts = artifacts
        self.ssh_keygen = ssh_keygen
        self.iterations = iterations
        self.syntax = syntax

    def create(self, stage: Stage, bits: int) -> Job:
        candidate = self.artifacts.candidate(bits)
        if stage == Stage.GENERATE:
            return Job(
                stage=stage,
                bits=bits,
                command=build_generate_command(self.ssh_keygen, bits, candidate, self.syntax),
                outputs=[candidate],
            )

        result = self.artifacts.result(bits)
        return Job(
            stage=stage,
            bits=bits,
            command=build_validate_command(self.ssh_keygen, self.iterations,
                                           candidate, result, self.syntax),
            inputs=[candidate],
            outputs=[result],
        )
