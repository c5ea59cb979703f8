"""
Merges per-bit-size moduli files into one timestamped output file.
"""
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Set

from .errors import ArtifactMissingError, MergeIOError
from .jobs import ArtifactSet

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    output_path: Path
    merged: List[int] = field(default_factory=list)
    skipped: Dict[int, ArtifactMissingError] = field(default_factory=dict)


class Merger:
    """
    Concatenates result artifacts in ascending bit order.

    Only opening the output file is fatal. A bit size whose screening
    failed, or whose result file is missing or unreadable, is skipped
    and reported in MergeResult.skipped.
    """

    def __init__(self, artifacts: ArtifactSet):
        self.artifacts = artifacts

    def merge(self, size_classes: Iterable[int], succeeded: Set[int], timestamp: int) -> MergeResult:
        """
        Args:
            size_classes: All bit sizes of the run (any order)
            succeeded: Bit sizes whose screening job succeeded
            timestamp: Run completion time, used in the output name

        Raises:
            MergeIOError: If the output file cannot be opened
        """
        output_path = self.artifacts.output(timestamp)
        result = MergeResult(output_path=output_path)

        try:
            out = open(output_path, "ab")
        except OSError as e:
            raise MergeIOError(f"Cannot create output file {output_path}: {e}") from e

        with out:
            for bits in sorted(size_classes):
                if bits not in succeeded:
                    self._skip(result, ArtifactMissingError(bits, "screening job did not succeed"))
                    continue

                moduli_file = self.artifacts.result(bits)
                if not moduli_file.exists():
                    self._skip(result, ArtifactMissingError(bits, f"{moduli_file} does not exist"))
                    continue

                start = out.tell()
                try:
                    with open(moduli_file, "rb") as src:
                        shutil.copyfileobj(src, out)
                    out.flush()
                except OSError as e:
                    self._discard_partial(out, output_path, start)
                    self._skip(result, ArtifactMissingError(bits, f"cannot append {moduli_file}: {e}"))
                    continue

                result.merged.append(bits)
                self._remove_intermediates(bits)

        logger.info(f"Merged {len(result.merged)} bit size(s) into {output_path}")
        return result

    def _discard_partial(self, out: BinaryIO, output_path: Path, start: int) -> None:
        """Cut the output back to `start` so a half-copied size leaves no bytes."""
        try:
            out.truncate(start)
            out.seek(start)
        except OSError as e:
            raise MergeIOError(f"Cannot remove partial data from {output_path}: {e}") from e

    def _skip(self, result: MergeResult, error: ArtifactMissingError) -> None:
        logger.warning(str(error))
        result.skipped[error.bits] = error

    def _remove_intermediates(self, bits: int) -> None:
        for path in (self.artifacts.result(bits), self.artifacts.candidate(bits)):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to remove {path}: {e}")
