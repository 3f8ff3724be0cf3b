"""
orthologize: orthology clustering and merging of candidate alignments

Seed sequences of many small alignments are searched all-vs-all with BLAST,
alignments whose seeds hit each other over most of both lengths are grouped
by single linkage, and each group is folded into one alignment by profile
alignment under a mean-distance acceptance test.
"""

__version__ = "0.1.0"

from .blast_search import BlastSearchClient, HitRecord
from .clustering import Cluster, build_clusters
from .config import (
    ConfigurationError,
    ExternalToolError,
    OrthologizeConfig,
    OrthologizeError,
)
from .hit_filter import accepted_hits, filter_hits
from .merging import ClusterMerger, ClusterResult, profile_align
from .parallel import ParallelExecutor
from .pipeline import OrthologizePipeline, read_manifest
from .sequences import SequenceCatalog
from .utils import deduplicate, mean_pairwise_distance

__all__ = [
    "BlastSearchClient",
    "HitRecord",
    "Cluster",
    "build_clusters",
    "ConfigurationError",
    "ExternalToolError",
    "OrthologizeConfig",
    "OrthologizeError",
    "accepted_hits",
    "filter_hits",
    "ClusterMerger",
    "ClusterResult",
    "profile_align",
    "ParallelExecutor",
    "OrthologizePipeline",
    "read_manifest",
    "SequenceCatalog",
    "deduplicate",
    "mean_pairwise_distance",
]
