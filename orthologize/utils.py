"""
Utility functions for orthologize.

This module provides helpers for reading and writing FASTA alignments,
scoring them by mean pairwise distance, and ordering sequence identifiers.
"""

import logging
from io import StringIO
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union

import numpy as np
from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord


# Symbols that carry no residue information for distance calculation
MISSING_SYMBOLS = frozenset('-.?N')

GAP_SYMBOLS = '-.'


def identifier_sort_key(identifier: str) -> Tuple[int, int, str]:
    """Sort key that orders numeric identifiers numerically, others lexically after them.

    Examples:
        >>> sorted(["10", "9", "abc"], key=identifier_sort_key)
        ['9', '10', 'abc']
    """
    if identifier.isdecimal():
        return (0, int(identifier), identifier)
    return (1, 0, identifier)


def sort_identifiers(identifiers: Iterable[str]) -> List[str]:
    """Return unique identifiers in numeric order."""
    return sorted(set(identifiers), key=identifier_sort_key)


def parse_alignment_string(text: str) -> Dict[str, str]:
    """
    Parse FASTA text into an ordered mapping of defline to aligned residues.

    Args:
        text: FASTA formatted alignment, e.g. aligner stdout

    Returns:
        Dict from full defline (without '>') to residue string
    """
    alignment = {}
    for record in SeqIO.parse(StringIO(text), "fasta"):
        alignment[record.description] = str(record.seq)
    return alignment


def read_alignment(path: Union[str, Path]) -> Dict[str, str]:
    """Read a FASTA alignment file into an ordered defline -> residues mapping."""
    alignment = {}
    try:
        for record in SeqIO.parse(str(path), "fasta"):
            alignment[record.description] = str(record.seq)
    except Exception as e:
        logging.error(f"Error reading alignment {path}: {e}")
        raise
    return alignment


def write_alignment(alignment: Dict[str, str], path: Union[str, Path]) -> None:
    """Write a defline -> residues mapping as two-line FASTA, overwriting path."""
    records = [
        SeqRecord(Seq(residues), id=defline, description="")
        for defline, residues in alignment.items()
    ]
    with open(path, 'w') as f:
        SeqIO.write(records, f, "fasta-2line")
    logging.debug(f"Wrote {len(records)} aligned sequences to {path}")


def ungap(residues: str) -> str:
    """Remove alignment gap symbols from a row."""
    return ''.join(c for c in residues if c not in GAP_SYMBOLS)


def deduplicate(alignment: Dict[str, str]) -> Dict[str, str]:
    """
    Collapse identical aligned rows onto the first defline that carries them.

    Comparison is case-insensitive. Row order of the survivors is preserved.
    """
    seen = set()
    unique = {}
    for defline, residues in alignment.items():
        key = residues.upper()
        if key in seen:
            logging.debug(f"Dropping duplicate sequence {defline}")
            continue
        seen.add(key)
        unique[defline] = residues

    removed = len(alignment) - len(unique)
    if removed > 0:
        logging.debug(f"Deduplicated {len(alignment)} sequences to {len(unique)} ({removed} duplicates removed)")
    return unique


def mean_pairwise_distance(alignment: Dict[str, str]) -> float:
    """
    Calculate the mean uncorrected p-distance over all pairs of rows.

    For each pair only sites where both rows carry a residue are compared;
    gaps and missing symbols are skipped. Pairs with no comparable site do
    not contribute to the mean.

    Args:
        alignment: Mapping of defline to aligned residues, all of equal length

    Returns:
        Mean distance in [0, 1]; 0.0 for fewer than two rows, np.nan when no
        pair has a comparable site

    Raises:
        ValueError: If rows differ in length
    """
    rows = [residues.upper() for residues in alignment.values()]
    n = len(rows)
    if n < 2:
        return 0.0

    if len({len(row) for row in rows}) != 1:
        raise ValueError("Aligned sequences must all have the same length")

    matrix = np.array([list(row) for row in rows], dtype='<U1')
    informative = ~np.isin(matrix, list(MISSING_SYMBOLS))

    distances = []
    for i in range(n):
        for j in range(i + 1, n):
            compared = informative[i] & informative[j]
            sites = int(np.count_nonzero(compared))
            if sites == 0:
                continue
            mismatches = int(np.count_nonzero(matrix[i][compared] != matrix[j][compared]))
            distances.append(mismatches / sites)

    if not distances:
        logging.debug(f"No comparable sites among {n} aligned sequences")
        return np.nan

    return float(np.mean(distances))
