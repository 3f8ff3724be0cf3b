"""
Single-linkage clustering over the accepted-hit graph.

Clusters are grown by destructively absorbing adjacency entries: once a
node's entry has been folded into a growing cluster it is removed from the
map and can never seed another cluster.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

from .utils import identifier_sort_key, sort_identifiers

logger = logging.getLogger(__name__)


@dataclass
class Cluster:
    """Orthologous identifiers sharing one merged alignment.

    cluster_id is 1-based and only stable within one run.
    """
    cluster_id: int
    members: List[str]

    @property
    def is_singleton(self) -> bool:
        return len(self.members) == 1


def symmetrize(adjacency: Dict[str, List[str]]) -> Dict[str, List[str]]:
    """Return a copy where every accepted link is present in both directions.

    Targets that never appeared as a query get an entry of their own.
    """
    linked: Dict[str, List[str]] = {node: list(neighbors) for node, neighbors in adjacency.items()}
    for node, neighbors in adjacency.items():
        for neighbor in neighbors:
            reverse = linked.setdefault(neighbor, [])
            if node not in reverse:
                reverse.append(node)
    return linked


def absorb(seed: str, adjacency: Dict[str, List[str]]) -> List[str]:
    """Grow one cluster from seed, consuming adjacency entries as it goes.

    The seed's entry is removed first; its neighbours start the worklist.
    Each member that still has an entry has that entry removed and its
    unseen neighbours queued. Every step removes one entry, so this
    terminates.

    Args:
        seed: Identifier with an entry in adjacency
        adjacency: Mutable map, modified in place

    Returns:
        Cluster members sorted numerically
    """
    members = {seed}
    worklist = []
    for neighbor in adjacency.pop(seed):
        if neighbor not in members:
            members.add(neighbor)
            worklist.append(neighbor)

    while worklist:
        node = worklist.pop()
        neighbors = adjacency.pop(node, None)
        if neighbors is None:
            continue
        for neighbor in neighbors:
            if neighbor not in members:
                members.add(neighbor)
                worklist.append(neighbor)

    return sorted(members, key=identifier_sort_key)


def build_clusters(adjacency: Dict[str, List[str]]) -> List[Cluster]:
    """
    Partition the accepted-hit graph into single-linkage clusters.

    Args:
        adjacency: Query id -> accepted target ids. Not modified; clustering
            consumes a symmetrized copy.

    Returns:
        Deduplicated clusters with ids assigned 1..n in discovery order
    """
    remaining = symmetrize(adjacency)

    sets: List[List[str]] = []
    for seed in list(remaining):
        if seed not in remaining:
            continue
        logger.debug(f"Going to cluster from seed {seed}")
        sets.append(absorb(seed, remaining))

    unique = deduplicate_clusters(sets)

    clusters = [Cluster(cluster_id, members) for cluster_id, members in enumerate(unique, 1)]
    singletons = sum(1 for cluster in clusters if cluster.is_singleton)
    logger.info(f"Built {len(clusters)} single-linkage clusters ({singletons} singletons)")
    return clusters


def deduplicate_clusters(sets: List[List[str]]) -> List[List[str]]:
    """Collapse clusters with identical membership, keeping first-seen order."""
    unique: Dict[tuple, List[str]] = {}
    for members in sets:
        key = tuple(sort_identifiers(members))
        if key not in unique:
            unique[key] = list(key)

    if len(unique) < len(sets):
        logger.debug(f"Removed {len(sets) - len(unique)} duplicate clusters")
    return list(unique.values())
