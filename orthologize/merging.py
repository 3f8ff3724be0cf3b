"""Greedy profile-alignment merging of the alignments in each cluster."""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .clustering import Cluster
from .config import ALIGNMENT_SUFFIX, ExternalToolError, OrthologizeConfig
from .parallel import ParallelExecutor
from .utils import deduplicate, mean_pairwise_distance, parse_alignment_string, write_alignment

logger = logging.getLogger(__name__)


def profile_align(file_a: Union[str, Path], file_b: Union[str, Path], muscle_bin: str = "muscle") -> str:
    """Align two existing alignments to each other with MUSCLE profile mode.

    Returns:
        The merged alignment as FASTA text

    Raises:
        ExternalToolError: If MUSCLE is missing, fails, or prints nothing
    """
    cmd = [muscle_bin, '-profile', '-in1', str(file_a), '-in2', str(file_b), '-quiet']

    try:
        result = subprocess.run(cmd, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"muscle stderr: {e.stderr}")
        raise ExternalToolError(f"Profile alignment of {file_a} and {file_b} failed: {e}") from e
    except FileNotFoundError:
        raise ExternalToolError(f"{muscle_bin} command not found. Please ensure MUSCLE is installed.")

    if not result.stdout.strip():
        raise ExternalToolError(f"Profile alignment of {file_a} and {file_b} produced no output")
    return result.stdout


@dataclass
class ClusterResult:
    """Outcome of merging one cluster."""
    cluster_id: int
    output_path: Path
    merged: List[Path] = field(default_factory=list)
    rejected: List[Path] = field(default_factory=list)


# Global worker state for per-cluster merging (initialized once per worker)
_worker_merger: Optional["ClusterMerger"] = None


def _init_merge_worker(merger: "ClusterMerger") -> None:
    """Initialize worker with the shared merger settings."""
    global _worker_merger
    _worker_merger = merger


def _merge_cluster_worker(cluster: Cluster) -> ClusterResult:
    """Worker function to merge the alignments of one cluster."""
    return _worker_merger.merge_cluster(cluster)


class ClusterMerger:
    """Folds each cluster's member alignments into one, left to right.

    Starting from the first member, every other member is profile-aligned
    onto the accumulated alignment. The candidate is kept only if its mean
    pairwise distance is below the configured maximum; otherwise the
    accumulator is left as it was and the member is dropped for good. The
    result therefore depends on member order.
    """

    def __init__(self, config: OrthologizeConfig, member_paths: Optional[Dict[str, Path]] = None):
        """
        Args:
            config: Run settings (workdir, distance ceiling, aligner, ordering)
            member_paths: Identifier -> alignment file; identifiers not listed
                resolve to <workdir>/<id>.fa
        """
        self.config = config
        self.member_paths = {k: Path(v) for k, v in (member_paths or {}).items()}

    def member_files(self, cluster: Cluster) -> List[Path]:
        """Alignment files of a cluster, in fold order."""
        files = [
            self.member_paths.get(identifier, self.config.workdir / f"{identifier}{ALIGNMENT_SUFFIX}")
            for identifier in cluster.members
        ]
        if self.config.sort_members:
            files.sort(key=lambda path: path.stat().st_size if path.exists() else 0, reverse=True)
        return files

    def accepts(self, distance: float) -> bool:
        """Whether a candidate with this mean distance may replace the accumulator."""
        if np.isnan(distance):
            return False
        return distance < self.config.backbone_max_distance

    def merge_step(self, current: Path, member: Path, merged_path: Path) -> Tuple[Path, bool]:
        """Try to fold one member into the accumulated alignment.

        Returns:
            (merged_path, True) if the candidate was accepted and written,
            otherwise (current, False) with nothing written
        """
        logger.debug(f"Attempting to merge {current} and {member}")
        text = profile_align(current, member, self.config.muscle_bin)
        try:
            candidate = parse_alignment_string(text)
            if not candidate:
                raise ValueError("no sequences")
            distance = mean_pairwise_distance(candidate)
        except ValueError as e:
            raise ExternalToolError(f"Malformed profile alignment of {current} and {member}: {e}") from e

        if not self.accepts(distance):
            logger.info(f"Rejecting {member} from {current} (mean distance {distance:.4f})")
            return current, False

        write_alignment(deduplicate(candidate), merged_path)
        logger.info(f"Merged {current} and {member} (mean distance {distance:.4f})")
        return merged_path, True

    def merge_cluster(self, cluster: Cluster) -> ClusterResult:
        """Merge one cluster's alignments; singletons pass through untouched."""
        files = self.member_files(cluster)

        if len(files) == 1:
            logger.info(f"Singleton cluster {cluster.cluster_id}: {files[0]}")
            return ClusterResult(cluster.cluster_id, files[0])

        logger.info(f"Merging {len(files)} alignments in cluster #{cluster.cluster_id}")
        merged_path = self.config.merged_path(cluster.cluster_id)

        current = files[0]
        result = ClusterResult(cluster.cluster_id, current, merged=[current])
        for member in files[1:]:
            current, accepted = self.merge_step(current, member, merged_path)
            if accepted:
                result.merged.append(member)
            else:
                result.rejected.append(member)

        result.output_path = current
        logger.info(f"Cluster #{cluster.cluster_id}: merged {len(result.merged)}, "
                    f"rejected {len(result.rejected)}, output {current}")
        return result

    def merge_all(self, clusters: List[Cluster],
                  executor: Optional[ParallelExecutor] = None) -> List[ClusterResult]:
        """Merge every cluster, one task per cluster.

        Returns:
            Results sorted by cluster id
        """
        executor = executor or ParallelExecutor(self.config.num_workers, self.config.show_progress)
        results = executor.map(
            _merge_cluster_worker, clusters,
            desc="Merging clusters", unit="cluster",
            initializer=_init_merge_worker, initargs=(self,)
        )
        return sorted(results, key=lambda r: r.cluster_id)
