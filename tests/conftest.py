"""
Shared fixtures for moduli_gen tests.

FakeLauncher stands in for ProcessLauncher so scheduling can be tested
without ssh-keygen: it records every launch and completion, writes the
artifacts a real job would produce, and can hold jobs open until a test
releases them.
"""
import sys
import threading
import time
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from moduli_gen.errors import JobExecutionError, JobLaunchError
from moduli_gen.jobs import JobResult, JobState, Stage
from moduli_gen.typed_config import AppConfig, GenerationConfig
from moduli_gen.user_output import UserOutput


class FakeHandle:
    def __init__(self, job, launcher, returncode, gate):
        self.job = job
        self.pid = 10000 + len(launcher.launched)
        self.terminated = False
        self._launcher = launcher
        self._returncode = returncode
        self._gate = gate
        self._started_at = time.time()

    def poll(self):
        return self._returncode if self._gate.is_set() else None

    def terminate(self, timeout=5.0):
        self.terminated = True
        self._returncode = -15
        self._gate.set()

    def wait(self):
        assert self._gate.wait(timeout=10), f"{self.job.name} was never released"
        if self._launcher.delay:
            time.sleep(self._launcher.delay)

        if self._returncode == 0:
            for path in self.job.outputs:
                path.write_text(self._launcher.artifact_text(self.job.stage, self.job.bits))
            self.job.state = JobState.SUCCEEDED
            error = None
        else:
            self.job.state = JobState.FAILED
            error = JobExecutionError(self.job.stage.value, self.job.bits, self._returncode)

        self._launcher.record('end', self.job)
        return JobResult(stage=self.job.stage, bits=self.job.bits, state=self.job.state,
                         returncode=self._returncode, output="", error=error,
                         started_at=self._started_at, finished_at=time.time())


class FakeLauncher:
    """
    Records launches in order and checks slot usage at each one.

    Args:
        returncodes: {(Stage, bits): exit status}, default 0
        fail_launch: set of (Stage, bits) that raise JobLaunchError
        hold: if True, jobs run until release() is called for them
        delay: seconds each job "runs" after being released
    """

    def __init__(self, returncodes=None, fail_launch=None, hold=False, delay=0.0):
        self.returncodes = returncodes or {}
        self.fail_launch = fail_launch or set()
        self.hold = hold
        self.delay = delay
        self.pool = None
        self.launched = []
        self.events = []
        self.max_occupied = 0
        self.handles = []
        self._gates = {}
        self._condition = threading.Condition()

    @staticmethod
    def artifact_text(stage, bits):
        if stage == Stage.GENERATE:
            return f"candidates {bits}\n"
        return f"moduli {bits}\n"

    def record(self, kind, job):
        with self._condition:
            self.events.append((kind, job.stage, job.bits))
            self._condition.notify_all()

    def launch(self, job):
        key = (job.stage, job.bits)
        if key in self.fail_launch:
            raise JobLaunchError(job.stage.value, job.bits, "No such file or directory")

        with self._condition:
            if self.pool is not None:
                self.max_occupied = max(self.max_occupied, self.pool.occupied)
                assert self.pool.occupied <= self.pool.capacity
            gate = self._gates.setdefault(key, threading.Event())
            if not self.hold:
                gate.set()
            job.state = JobState.RUNNING
            self.launched.append(job)
            handle = FakeHandle(job, self, self.returncodes.get(key, 0), gate)
            self.handles.append(handle)
            self.events.append(('start', job.stage, job.bits))
            self._condition.notify_all()
        return handle

    def wait_launched(self, stage, bits, timeout=5.0):
        with self._condition:
            return self._condition.wait_for(
                lambda: ('start', stage, bits) in self.events, timeout=timeout)

    def release(self, stage, bits):
        with self._condition:
            self._gates.setdefault((stage, bits), threading.Event()).set()

    def dispatched(self, stage):
        return [job.bits for job in self.launched if job.stage == stage]


@pytest.fixture
def quiet_output():
    return UserOutput(quiet=True)


@pytest.fixture
def fake_launcher():
    return FakeLauncher()


@pytest.fixture
def make_config(tmp_path):
    """Build an AppConfig rooted in a temp directory with a fast poll interval."""
    def _make(min_bits=3072, max_bits=5120, bit_delta=1024, workers=0, entropy_minimum=2000):
        config = AppConfig()
        config.generation = GenerationConfig(min_bits=min_bits, max_bits=max_bits,
                                             bit_delta=bit_delta)
        config.scheduler.poll_interval = 0.01
        config.scheduler.workers = workers
        config.preflight.entropy_minimum = entropy_minimum
        config.execution.work_dir = str(tmp_path / "work")
        config.execution.job_log_dir = str(tmp_path / "job_logs")
        config.logging.file = str(tmp_path / "logs" / "moduli_gen.log")
        return config
    return _make
