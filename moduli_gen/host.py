"""
Host inspection helpers: entropy pool, core count and process priority.
"""
import logging
from pathlib import Path

import psutil

from .errors import PreflightError

logger = logging.getLogger(__name__)

DEFAULT_ENTROPY_PATH = "/proc/sys/kernel/random/entropy_avail"


def read_entropy(entropy_path: str = DEFAULT_ENTROPY_PATH) -> int:
    """
    Read the kernel's available entropy estimate in bits.

    Raises:
        PreflightError: If the counter cannot be read or parsed
    """
    try:
        raw = Path(entropy_path).read_text().strip()
        return int(raw)
    except (OSError, ValueError) as e:
        raise PreflightError(f"Cannot read entropy from {entropy_path}: {e}",
                             entropy_path=entropy_path) from e


def check_entropy(minimum: int, entropy_path: str = DEFAULT_ENTROPY_PATH,
                  maximum: int = 4096, reader=read_entropy) -> int:
    """
    Verify the entropy pool holds at least `minimum` bits.

    Returns:
        The measured entropy

    Raises:
        PreflightError: If the pool is below minimum
    """
    entropy = reader(entropy_path)
    if entropy < minimum:
        raise PreflightError(
            f"Kernel entropy pool is low ({entropy} bits, need {minimum})",
            entropy=entropy, minimum=minimum, maximum=maximum,
            entropy_path=entropy_path,
        )
    logger.debug(f"Entropy pool at {entropy} bits (minimum {minimum})")
    return entropy


def detect_core_count() -> int:
    """
    Number of physical cores (sockets x cores per socket).

    Falls back to 1 when detection fails or reports nothing.
    """
    try:
        cores = psutil.cpu_count(logical=False)
    except Exception as e:
        logger.warning(f"Core count detection failed, using 1: {e}")
        return 1
    if not cores:
        logger.warning("Core count detection returned nothing, using 1")
        return 1
    return cores


def demote_priority(pid: int) -> bool:
    """
    Lower a process to idle I/O class and lowest CPU priority.

    Best effort: failures are logged and reported through the return value.

    Returns:
        True if both adjustments were applied
    """
    try:
        process = psutil.Process(pid)
    except psutil.Error as e:
        logger.warning(f"Cannot demote priority of pid {pid}: {e}")
        return False

    applied = True
    try:
        process.ionice(psutil.IOPRIO_CLASS_IDLE)
    except (psutil.Error, AttributeError, OSError, ValueError) as e:
        logger.warning(f"Failed to set idle I/O class for pid {pid}: {e}")
        applied = False

    try:
        process.nice(19)
    except (psutil.Error, OSError) as e:
        logger.warning(f"Failed to renice pid {pid}: {e}")
        applied = False

    return applied
