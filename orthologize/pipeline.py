"""
End-to-end orthologize stage.

Reads a manifest of seed-named alignments, searches the seeds against each
other, clusters them by accepted hits, merges each cluster and writes one
line per cluster to the results manifest.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .blast_search import BlastSearchClient
from .clustering import Cluster, build_clusters
from .config import ALIGNMENT_SUFFIX, ConfigurationError, OrthologizeConfig
from .hit_filter import filter_hits
from .merging import ClusterMerger, ClusterResult
from .parallel import ParallelExecutor
from .sequences import SequenceCatalog
from .utils import sort_identifiers

logger = logging.getLogger(__name__)


def read_manifest(infile: Union[str, Path]) -> List[Path]:
    """Read alignment paths, one per line, dropping blanks and duplicates.

    Raises:
        ConfigurationError: If the file is missing, empty, or lists nothing
    """
    path = Path(infile)
    if not path.exists():
        raise ConfigurationError(f"file {infile} does not exist")
    if path.stat().st_size == 0:
        raise ConfigurationError(f"file {infile} is empty")

    logger.info(f"Going to read file list {infile}")
    with open(path) as f:
        lines = [line.strip() for line in f]

    # duplicates are possible, keep the first occurrence
    alignments = [Path(line) for line in dict.fromkeys(line for line in lines if line)]
    if not alignments:
        raise ConfigurationError(f"file {infile} lists no alignments")

    logger.info(f"Read {len(alignments)} alignments")
    return alignments


def seed_identifiers(alignments: List[Path]) -> Dict[str, Path]:
    """Map each alignment to the seed identifier in its file name (<id>.fa)."""
    member_paths: Dict[str, Path] = {}
    for path in alignments:
        name = path.name
        if not name.endswith(ALIGNMENT_SUFFIX) or len(name) == len(ALIGNMENT_SUFFIX):
            logger.warning(f"Skipping {path}: not named <seed id>{ALIGNMENT_SUFFIX}")
            continue
        identifier = name[:-len(ALIGNMENT_SUFFIX)]
        if identifier in member_paths:
            logger.warning(f"Seed {identifier} listed twice ({member_paths[identifier]}, {path}), keeping first")
            continue
        member_paths[identifier] = path
    return member_paths


def write_results(results: List[ClusterResult], outfile: Path) -> None:
    """Write the output alignment of every cluster, one path per line."""
    with open(outfile, 'w') as f:
        for result in sorted(results, key=lambda r: r.cluster_id):
            f.write(f"{result.output_path}\n")
    logger.info(f"Wrote {len(results)} cluster alignments to {outfile}")


class OrthologizePipeline:
    """Runs the orthologize stage with pluggable search, catalog and executor."""

    def __init__(self, config: OrthologizeConfig,
                 search_client: Optional[BlastSearchClient] = None,
                 catalog: Optional[SequenceCatalog] = None,
                 executor: Optional[ParallelExecutor] = None):
        self.config = config
        self.search_client = search_client or BlastSearchClient(
            blastn_bin=config.blastn_bin,
            makeblastdb_bin=config.makeblastdb_bin,
        )
        self.catalog = catalog
        self.executor = executor or ParallelExecutor(config.num_workers, config.show_progress)

    def load_catalog(self, member_paths: Dict[str, Path]) -> SequenceCatalog:
        if self.catalog is not None:
            return self.catalog
        if self.config.sequences is not None:
            if not self.config.sequences.exists():
                raise ConfigurationError(f"file {self.config.sequences} does not exist")
            return SequenceCatalog.from_fasta(self.config.sequences)
        return SequenceCatalog.from_alignments(member_paths)

    def cluster(self, member_paths: Dict[str, Path], catalog: SequenceCatalog) -> List[Cluster]:
        """Search the seeds all-vs-all and build single-linkage clusters."""
        database = self.config.database_path
        logger.info(f"Creating database file {database}")
        seeds = self.search_client.write_database(catalog, sort_identifiers(member_paths), database)
        if not seeds:
            raise ConfigurationError("None of the listed alignments has a resolvable seed sequence")

        self.search_client.create_database(database)
        results_by_query = self.search_client.search(database)

        # seeds without any reported hit still form singleton clusters
        for identifier in seeds:
            results_by_query.setdefault(identifier, [])

        lengths = catalog.lengths(seeds)
        adjacency = filter_hits(results_by_query, lengths, self.config.merge_overlap, self.executor)
        return build_clusters(adjacency)

    def run(self, infile: Union[str, Path]) -> List[ClusterResult]:
        """Run the whole stage.

        The results manifest is truncated once the input manifest has been
        validated and is written only after every cluster has been merged.

        Raises:
            ConfigurationError: On missing or empty input
            ExternalToolError: If BLAST or the aligner fails
        """
        member_paths = seed_identifiers(read_manifest(infile))
        if not member_paths:
            raise ConfigurationError(f"file {infile} lists no alignments named <seed id>{ALIGNMENT_SUFFIX}")

        self.config.workdir.mkdir(parents=True, exist_ok=True)
        outfile = self.config.outfile_path
        open(outfile, 'w').close()

        catalog = self.load_catalog(member_paths)
        clusters = self.cluster(member_paths, catalog)

        merger = ClusterMerger(self.config, member_paths)
        results = merger.merge_all(clusters, self.executor)

        write_results(results, outfile)
        return results
