"""Bidirectional overlap filtering of all-vs-all BLAST hits."""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .blast_search import HitRecord
from .config import MERGE_OVERLAP
from .parallel import ParallelExecutor

logger = logging.getLogger(__name__)


AdjacencyMap = Dict[str, List[str]]


# Global worker state for per-query filtering (initialized once per worker)
_worker_lengths: Optional[Dict[str, int]] = None
_worker_overlap: Optional[float] = None


def _init_filter_worker(lengths: Dict[str, int], overlap: float) -> None:
    """Initialize worker with the shared sequence lengths and threshold."""
    global _worker_lengths, _worker_overlap
    _worker_lengths = lengths
    _worker_overlap = overlap


def _filter_query_worker(query_report: Tuple[str, List[HitRecord]]) -> AdjacencyMap:
    """Worker function to filter the hits of one query."""
    query_id, hit_records = query_report
    return accepted_hits(query_id, hit_records, _worker_lengths.get, _worker_overlap)


def _resolve_length(length_of: Callable[[str], Optional[int]], identifier: str) -> Optional[int]:
    try:
        return length_of(identifier)
    except KeyError:
        return None


def accepted_hits(query_id: str, hit_records: Sequence[HitRecord],
                  length_of: Callable[[str], Optional[int]],
                  overlap: float = MERGE_OVERLAP) -> AdjacencyMap:
    """Keep the hits whose aligned segments cover enough of both sequences.

    Segment lengths are summed over all HSPs of a hit. A hit is accepted only
    if the covered fraction of the query and the covered fraction of the hit
    both strictly exceed ``overlap``.

    Args:
        query_id: Identifier of the query
        hit_records: The query's hits in report order
        length_of: Resolves an identifier to its residue count; may return
            None or raise KeyError for unknown identifiers
        overlap: Minimum covered fraction, exclusive

    Returns:
        {query_id: accepted target ids in hit order}, with an empty list when
        nothing is accepted, or {} when the query's own length is unknown
    """
    q_len = _resolve_length(length_of, query_id)
    if not q_len:
        logger.warning(f"No sequence length for query {query_id}, skipping its hits")
        return {}

    accepted: List[str] = []
    for hit in hit_records:
        target = hit.target_id
        if not target:
            logger.warning(f"Skipping unnamed hit for query {query_id}")
            continue

        h_len = _resolve_length(length_of, target)
        if not h_len:
            logger.warning(f"No sequence length for hit {target} of query {query_id}, skipping")
            continue

        q_cov = hit.query_coverage
        h_cov = hit.hit_coverage

        if q_cov / q_len > overlap and h_cov / h_len > overlap:
            if target not in accepted:
                accepted.append(target)
            logger.debug(f"\thit: {target}")
        else:
            logger.debug(f"Discarding hit {target} for query {query_id} "
                         f"(coverage {q_cov}/{q_len} query, {h_cov}/{h_len} hit)")

    logger.info(f"Found {len(accepted)} hits for query {query_id} ({q_len} nt)")
    return {query_id: accepted}


def filter_hits(results_by_query: Dict[str, List[HitRecord]], lengths: Dict[str, int],
                overlap: float = MERGE_OVERLAP,
                executor: Optional[ParallelExecutor] = None) -> AdjacencyMap:
    """Filter every query's hits, one task per query, into one adjacency map.

    Per-query maps are combined only after all tasks have returned.
    """
    executor = executor or ParallelExecutor()
    query_reports = list(results_by_query.items())

    per_query = executor.map(
        _filter_query_worker, query_reports,
        desc="Filtering BLAST hits", unit="query",
        initializer=_init_filter_worker, initargs=(lengths, overlap)
    )

    adjacency: AdjacencyMap = {}
    for entry in per_query:
        adjacency.update(entry)

    edges = sum(len(targets) for targets in adjacency.values())
    logger.info(f"Accepted {edges} hits across {len(adjacency)} queries")
    return adjacency
