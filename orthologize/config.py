"""Configuration and error types for orthologize."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


# Minimum fraction of both query and hit covered by HSPs for a hit to be kept
MERGE_OVERLAP = 0.51

# Merged alignments at or above this mean p-distance are rejected
BACKBONE_MAX_DISTANCE = 0.1

DEFAULT_OUTFILE = "merged.txt"
SEEDS_DATABASE = "seeds.fa"
ALIGNMENT_SUFFIX = ".fa"


class OrthologizeError(Exception):
    """Base class for fatal orthologize stage errors."""
    pass


class ConfigurationError(OrthologizeError):
    """Raised when inputs or settings make the stage impossible to run."""
    pass


class ExternalToolError(OrthologizeError):
    """Raised when BLAST or the profile aligner fails or returns nothing."""
    pass


@dataclass
class OrthologizeConfig:
    """Settings for one orthologize run.

    Args:
        workdir: Directory holding the member alignments and all outputs
        outfile: Name of the results manifest, relative to workdir
        merge_overlap: HitFilter threshold, strictly between 0 and 1
        backbone_max_distance: Merge acceptance ceiling on mean p-distance
        num_workers: Process pool size (default: CPU count)
        show_progress: Whether to show tqdm progress bars
        sort_members: Fold members largest file first instead of id order
        sequences: Optional reference FASTA holding the seed sequences
    """
    workdir: Path = field(default_factory=lambda: Path("."))
    outfile: str = DEFAULT_OUTFILE
    merge_overlap: float = MERGE_OVERLAP
    backbone_max_distance: float = BACKBONE_MAX_DISTANCE
    num_workers: int = field(default_factory=lambda: os.cpu_count() or 1)
    show_progress: bool = True
    sort_members: bool = False
    sequences: Optional[Path] = None
    blastn_bin: str = "blastn"
    makeblastdb_bin: str = "makeblastdb"
    muscle_bin: str = "muscle"

    def __post_init__(self):
        self.workdir = Path(self.workdir)
        if self.sequences is not None:
            self.sequences = Path(self.sequences)
        self.validate()

    def validate(self) -> None:
        """Check thresholds and worker count.

        Raises:
            ConfigurationError: If any setting is out of range
        """
        if not 0.0 < self.merge_overlap < 1.0:
            raise ConfigurationError(
                f"merge_overlap must be between 0 and 1, got {self.merge_overlap}")
        if self.backbone_max_distance <= 0.0:
            raise ConfigurationError(
                f"backbone_max_distance must be positive, got {self.backbone_max_distance}")
        if self.num_workers < 1:
            raise ConfigurationError(
                f"num_workers must be at least 1, got {self.num_workers}")
        if not self.outfile:
            raise ConfigurationError("outfile name must not be empty")

    @property
    def outfile_path(self) -> Path:
        return self.workdir / self.outfile

    @property
    def database_path(self) -> Path:
        return self.workdir / SEEDS_DATABASE

    def merged_path(self, cluster_id: int) -> Path:
        """Path of the merged alignment written for a cluster."""
        return self.workdir / f"cluster{cluster_id}{ALIGNMENT_SUFFIX}"
