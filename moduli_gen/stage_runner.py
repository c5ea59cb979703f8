#!/usr/bin/env python3
"""
StageRunner - drives one stage across every bit size with bounded parallelism.

Handles:
- Dispatching bit sizes in ascending order, one slot per job
- Releasing a slot as soon as its process exits
- Waiting for every job of the stage before returning (stage barrier)
- Stopping dispatch and terminating running jobs on a stop request
"""
import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional

from .errors import JobLaunchError, RunCancelled
from .jobs import JobFactory, JobResult, JobState, Stage
from .process_launcher import JobHandle, ProcessLauncher
from .slot_pool import SlotPool
from .user_output import UserOutput, get_output

logger = logging.getLogger(__name__)

STAGE_MESSAGES = {
    Stage.GENERATE: ("Generating candidate primes of bitsize {bits}",
                     "Waiting for candidate prime generation jobs to complete..."),
    Stage.VALIDATE: ("Testing candidate primes of bitsize {bits} for primality",
                     "Waiting for prime testing jobs to complete..."),
}


class StageRunner:
    """Runs one stage at a time over a shared SlotPool."""

    def __init__(self, pool: SlotPool, launcher: ProcessLauncher, jobs: JobFactory,
                 stop_event: Optional[threading.Event] = None,
                 output: Optional[UserOutput] = None):
        """
        Args:
            pool: Slot pool bounding concurrent jobs
            launcher: Starts job processes
            jobs: Builds the job for each (stage, bit size)
            stop_event: When set, stop dispatching and terminate running jobs
            output: User-facing output handler
        """
        self.pool = pool
        self.launcher = launcher
        self.jobs = jobs
        self.stop_event = stop_event or threading.Event()
        self.output = output or get_output()

        self.running: List[JobHandle] = []
        self._running_lock = threading.Lock()

    def run_stage(self, stage: Stage, size_classes: List[int]) -> List[JobResult]:
        """
        Run `stage` for every bit size and wait for all of them.

        A failed job is recorded in its result; it never stops the others.

        Returns:
            One JobResult per bit size, in ascending bit order
        """
        dispatch_message, wait_message = STAGE_MESSAGES[stage]
        results: Dict[int, JobResult] = {}
        futures: Dict[Future, int] = {}

        with ThreadPoolExecutor(max_workers=self.pool.capacity,
                                thread_name_prefix=f"{stage.value}-wait") as executor:
            for bits in sorted(size_classes):
                if self.stop_event.is_set() or not self.pool.acquire(self.stop_event):
                    results[bits] = self._cancelled_result(stage, bits)
                    continue

                job = self.jobs.create(stage, bits)
                self.output.info(dispatch_message.format(bits=bits))
                try:
                    handle = self.launcher.launch(job)
                except JobLaunchError as e:
                    self.pool.release()
                    self.output.error(str(e))
                    results[bits] = JobResult(stage=stage, bits=bits,
                                              state=JobState.FAILED, error=e)
                    continue

                with self._running_lock:
                    self.running.append(handle)
                futures[executor.submit(self._await_job, handle)] = bits

            if futures:
                self.output.info(wait_message)
            self._wait_for_stage(list(futures))

            for future, bits in futures.items():
                try:
                    results[bits] = future.result()
                except Exception as e:
                    logger.error(f"Waiting on {stage.value} job for {bits} bits failed: {e}")
                    results[bits] = JobResult(stage=stage, bits=bits, state=JobState.FAILED)

        return [results[bits] for bits in sorted(results)]

    def _await_job(self, handle: JobHandle) -> JobResult:
        """Wait for one job in a worker thread, then give its slot back."""
        try:
            result = handle.wait()
        finally:
            with self._running_lock:
                if handle in self.running:
                    self.running.remove(handle)
            self.pool.release()

        if result.succeeded:
            logger.info(f"{handle.job.name} completed in {result.duration or 0.0:.1f}s")
        else:
            logger.warning(f"{handle.job.name} failed: {result.error}")
        return result

    def _wait_for_stage(self, futures: List[Future]) -> None:
        """Stage barrier. Terminates running jobs if a stop is requested."""
        pending = set(futures)
        while pending:
            _, pending = wait(pending, timeout=self.pool.poll_interval,
                              return_when=FIRST_COMPLETED)
            if pending and self.stop_event.is_set():
                self.terminate_running()

    def terminate_running(self) -> None:
        with self._running_lock:
            handles = list(self.running)
        for handle in handles:
            logger.info(f"Terminating {handle.job.name} (pid {handle.pid})")
            handle.terminate()

    def _cancelled_result(self, stage: Stage, bits: int) -> JobResult:
        logger.info(f"Not dispatching {stage.value} job for {bits} bits: run cancelled")
        return JobResult(stage=stage, bits=bits, state=JobState.FAILED,
                         error=RunCancelled("cancelled"))
