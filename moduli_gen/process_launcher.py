"""
Asynchronous launching of external ssh-keygen jobs.

Each job's stdout and stderr are merged into an anonymous temporary file
rather than a pipe, so a chatty child can never block on a full pipe
while nobody is reading. The captured text is attached to the job result
and, for failed jobs, optionally kept on disk for diagnosis.
"""

import logging
import subprocess
import tempfile
import time
from pathlib import Path
from typing import IO, Optional, Union

from .errors import JobExecutionError, JobLaunchError
from .host import demote_priority
from .jobs import Job, JobResult, JobState

logger = logging.getLogger(__name__)


class JobHandle:
    """A running job. wait() blocks only the calling thread."""

    def __init__(self, job: Job, process: subprocess.Popen, capture: IO[bytes],
                 launcher: 'ProcessLauncher', started_at: float):
        self.job = job
        self.process = process
        self.started_at = started_at
        self._capture = capture
        self._launcher = launcher
        self._result: Optional[JobResult] = None

    @property
    def pid(self) -> int:
        return self.process.pid

    def poll(self) -> Optional[int]:
        """Return the exit status if the process has finished, else None."""
        return self.process.poll()

    def terminate(self, timeout: float = 5.0) -> None:
        """Stop the process, escalating to kill if it ignores SIGTERM."""
        if self.process.poll() is not None:
            return
        self.process.terminate()
        try:
            self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self.process.kill()
            self.process.wait()

    def wait(self) -> JobResult:
        """
        Block until the process exits and build its JobResult.

        Calling wait() again returns the same result.
        """
        if self._result is not None:
            return self._result

        returncode = self.process.wait()
        finished_at = time.time()
        output = self._read_capture()

        if returncode == 0:
            self.job.state = JobState.SUCCEEDED
            error = None
        else:
            self.job.state = JobState.FAILED
            error = JobExecutionError(self.job.stage.value, self.job.bits, returncode)
            self._launcher.save_failed_output(self.job, output)

        self._result = JobResult(
            stage=self.job.stage,
            bits=self.job.bits,
            state=self.job.state,
            returncode=returncode,
            output=output,
            error=error,
            started_at=self.started_at,
            finished_at=finished_at,
        )
        return self._result

    def _read_capture(self) -> str:
        try:
            self._capture.seek(0)
            return self._capture.read().decode("utf-8", errors="replace")
        finally:
            self._capture.close()


class ProcessLauncher:
    """Starts jobs as low-priority child processes."""

    def __init__(self, idle_priority: bool = True, cwd: Optional[Union[str, Path]] = None,
                 job_log_dir: Optional[Union[str, Path]] = None,
                 keep_failed_output: bool = True):
        """
        Args:
            idle_priority: Demote each child to idle I/O and nice 19
            cwd: Working directory for children (default: current)
            job_log_dir: Where to keep output of failed jobs
            keep_failed_output: Write failed job output to job_log_dir
        """
        self.idle_priority = idle_priority
        self.cwd = str(cwd) if cwd is not None else None
        self.job_log_dir = Path(job_log_dir) if job_log_dir else None
        self.keep_failed_output = keep_failed_output

    def launch(self, job: Job) -> JobHandle:
        """
        Start the job's command and return immediately.

        Raises:
            JobLaunchError: If the process cannot be started
        """
        capture = tempfile.TemporaryFile(prefix=f"moduli_{job.name}_")
        try:
            process = subprocess.Popen(
                job.command,
                stdin=subprocess.DEVNULL,
                stdout=capture,
                stderr=subprocess.STDOUT,
                cwd=self.cwd,
            )
        except (OSError, ValueError) as e:
            capture.close()
            job.state = JobState.FAILED
            raise JobLaunchError(job.stage.value, job.bits, str(e)) from e

        started_at = time.time()
        job.state = JobState.RUNNING
        logger.debug(f"Started {job.name} as pid {process.pid}: {' '.join(job.command)}")

        if self.idle_priority:
            demote_priority(process.pid)

        return JobHandle(job, process, capture, self, started_at)

    def save_failed_output(self, job: Job, output: str) -> Optional[Path]:
        """Save a failed job's output for debugging."""
        if not self.keep_failed_output or self.job_log_dir is None:
            return None
        try:
            self.job_log_dir.mkdir(parents=True, exist_ok=True)
            log_file = self.job_log_dir / f"{job.stage.value}_{job.bits}_{int(time.time())}.log"
            log_file.write_text(output)
            logger.info(f"Output of failed {job.name} saved to: {log_file}")
            return log_file
        except OSError as e:
            logger.warning(f"Failed to save output of {job.name}: {e}")
            return None
