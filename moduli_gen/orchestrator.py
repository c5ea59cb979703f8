"""
Orchestrator - sequences a full moduli generation run.

preflight -> generate (all bit sizes) -> barrier -> screen (all bit sizes)
-> barrier -> merge. Each step is a hard precondition for the next.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .errors import ArtifactMissingError, MergeIOError, RunCancelled
from .host import check_entropy, detect_core_count, read_entropy
from .jobs import ArtifactSet, JobFactory, JobResult, Stage
from .merger import Merger
from .process_launcher import ProcessLauncher
from .slot_pool import SlotPool
from .stage_runner import StageRunner
from .typed_config import AppConfig, LoggingConfig
from .user_output import UserOutput, get_output

logger = logging.getLogger(__name__)


def setup_logging(logging_config: LoggingConfig) -> None:
    """Set up logging to the configured file and the console."""
    logging_config.ensure_log_dir_exists()

    logging.basicConfig(
        level=getattr(logging, logging_config.level, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(logging_config.file),
            logging.StreamHandler()
        ]
    )


@dataclass
class RunReport:
    """Everything a caller needs to know about a finished run."""
    output_path: Path
    size_classes: List[int]
    stage_results: Dict[Stage, List[JobResult]] = field(default_factory=dict)
    merged: List[int] = field(default_factory=list)
    skipped: Dict[int, ArtifactMissingError] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.skipped


class Orchestrator:
    """Runs both stages and the merge for one configuration."""

    def __init__(self, config: AppConfig,
                 output: Optional[UserOutput] = None,
                 launcher: Optional[ProcessLauncher] = None,
                 stop_event: Optional[threading.Event] = None,
                 entropy_reader: Callable[[str], int] = read_entropy,
                 core_detector: Callable[[], int] = detect_core_count,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.output = output or get_output()
        self.stop_event = stop_event or threading.Event()
        self.entropy_reader = entropy_reader
        self.core_detector = core_detector
        self.clock = clock

        self.artifacts = ArtifactSet(config.execution.work_dir, config.execution.output_prefix)
        self.jobs = JobFactory(
            self.artifacts,
            ssh_keygen=config.programs.ssh_keygen.path,
            iterations=config.generation.iterations,
            syntax=config.programs.ssh_keygen.syntax,
        )
        self.launcher = launcher or ProcessLauncher(
            idle_priority=config.scheduler.idle_priority,
            job_log_dir=config.execution.job_log_dir,
            keep_failed_output=config.execution.keep_failed_output,
        )

    def preflight(self) -> Optional[int]:
        """
        Check the entropy pool.

        Raises:
            PreflightError: If entropy is below the configured minimum
        """
        preflight = self.config.preflight
        if preflight.skip:
            logger.info("Entropy check skipped")
            return None
        return check_entropy(preflight.entropy_minimum, preflight.entropy_path,
                             maximum=preflight.entropy_maximum,
                             reader=self.entropy_reader)

    def slot_capacity(self) -> int:
        """Configured worker count, or one slot per physical core."""
        if self.config.scheduler.workers > 0:
            return self.config.scheduler.workers
        return max(1, self.core_detector() or 1)

    def planned_commands(self) -> Dict[Stage, List[List[str]]]:
        size_classes = self.config.generation.size_classes()
        return {
            stage: [self.jobs.create(stage, bits).command for bits in size_classes]
            for stage in (Stage.GENERATE, Stage.VALIDATE)
        }

    def run(self) -> RunReport:
        """
        Execute the whole run.

        Raises:
            PreflightError: Entropy too low (nothing was started)
            RunCancelled: Stop requested before the merge
            MergeIOError: Work directory or output file could not be created
        """
        self.preflight()

        pool = SlotPool(self.slot_capacity(), self.config.scheduler.poll_interval)
        self.output.info(f"{pool.capacity} CPU cores available to generate primes")

        size_classes = self.config.generation.size_classes()
        logger.info(f"Bit sizes for this run: {', '.join(str(b) for b in size_classes)}")
        try:
            self.config.execution.ensure_dirs_exist()
        except OSError as e:
            raise MergeIOError(f"Cannot create work directory {self.config.execution.work_dir}: {e}") from e

        runner = StageRunner(pool, self.launcher, self.jobs,
                             stop_event=self.stop_event, output=self.output)
        stage_results: Dict[Stage, List[JobResult]] = {}

        for stage in (Stage.GENERATE, Stage.VALIDATE):
            stage_results[stage] = runner.run_stage(stage, size_classes)
            self._check_cancelled(stage)

        screened = {r.bits for r in stage_results[Stage.VALIDATE] if r.succeeded}
        timestamp = int(self.clock())
        self.output.info(f"Merging candidate moduli together into "
                         f"{self.artifacts.output(timestamp).name}")

        merge = Merger(self.artifacts).merge(size_classes, screened, timestamp)
        logger.info(f"Peak concurrent jobs: {pool.peak}/{pool.capacity}")
        return RunReport(
            output_path=merge.output_path,
            size_classes=size_classes,
            stage_results=stage_results,
            merged=merge.merged,
            skipped=merge.skipped,
        )

    def _check_cancelled(self, stage: Stage) -> None:
        if self.stop_event.is_set():
            raise RunCancelled(f"Run cancelled during {stage.value} stage; nothing was merged")
