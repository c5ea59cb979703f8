"""Tests for host inspection: entropy, core count and priority demotion."""
from unittest.mock import MagicMock, patch

import psutil
import pytest

from moduli_gen.errors import PreflightError
from moduli_gen.host import (check_entropy, demote_priority, detect_core_count,
                             read_entropy)


class TestEntropy:
    def test_read_entropy(self, tmp_path):
        path = tmp_path / "entropy_avail"
        path.write_text("3172\n")
        assert read_entropy(str(path)) == 3172

    def test_unreadable_counter(self, tmp_path):
        with pytest.raises(PreflightError):
            read_entropy(str(tmp_path / "missing"))

    def test_garbage_counter(self, tmp_path):
        path = tmp_path / "entropy_avail"
        path.write_text("lots\n")
        with pytest.raises(PreflightError):
            read_entropy(str(path))

    def test_check_passes_at_minimum(self):
        assert check_entropy(2000, reader=lambda path: 2000) == 2000

    def test_check_fails_below_minimum(self):
        with pytest.raises(PreflightError) as exc_info:
            check_entropy(2000, reader=lambda path: 1500)
        assert exc_info.value.entropy == 1500
        assert exc_info.value.minimum == 2000

    def test_remediation_message(self):
        error = PreflightError("low", entropy=1500, minimum=2000, maximum=4096)
        text = error.remediation()
        assert "(1500 bits out of a potential 4096 bits)" in text
        assert "haveged" in text.lower()
        assert "rng-tools" in text.lower()
        assert "cat /proc/sys/kernel/random/entropy_avail" in text
        assert "Entropy should be at least 2000 bits." in text


class TestCoreCount:
    def test_physical_cores(self):
        with patch("moduli_gen.host.psutil.cpu_count", return_value=8) as cpu_count:
            assert detect_core_count() == 8
        cpu_count.assert_called_once_with(logical=False)

    @pytest.mark.parametrize("reported", [None, 0])
    def test_fallback_when_unknown(self, reported):
        with patch("moduli_gen.host.psutil.cpu_count", return_value=reported):
            assert detect_core_count() == 1

    def test_fallback_when_detection_raises(self):
        with patch("moduli_gen.host.psutil.cpu_count", side_effect=RuntimeError("no /proc")):
            assert detect_core_count() == 1


class TestDemotePriority:
    def test_sets_idle_io_and_nice(self):
        process = MagicMock()
        with patch("moduli_gen.host.psutil.Process", return_value=process):
            assert demote_priority(1234) is True
        process.nice.assert_called_once_with(19)
        process.ionice.assert_called_once()

    def test_failures_are_not_fatal(self):
        process = MagicMock()
        process.ionice.side_effect = psutil.AccessDenied(1234)
        process.nice.side_effect = psutil.AccessDenied(1234)
        with patch("moduli_gen.host.psutil.Process", return_value=process):
            assert demote_priority(1234) is False

    def test_vanished_process(self):
        with patch("moduli_gen.host.psutil.Process", side_effect=psutil.NoSuchProcess(1234)):
            assert demote_priority(1234) is False
