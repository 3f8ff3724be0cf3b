"""Seed sequence lookup for orthologize."""

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from Bio import SeqIO

from .utils import read_alignment, ungap

logger = logging.getLogger(__name__)


class SequenceCatalog:
    """Read-only mapping from sequence identifier to residues.

    Lookups never mutate the catalog, so a catalog may be shared between
    threads or copied into worker processes.
    """

    def __init__(self, sequences: Optional[Dict[str, str]] = None):
        self._sequences: Dict[str, str] = dict(sequences or {})

    @classmethod
    def from_fasta(cls, fasta_path: Union[str, Path]) -> "SequenceCatalog":
        """Build a catalog from a reference FASTA keyed by record id."""
        sequences = {}
        try:
            for record in SeqIO.parse(str(fasta_path), "fasta"):
                if record.id in sequences:
                    logger.warning(f"Duplicate sequence id {record.id} in {fasta_path}, keeping first")
                    continue
                sequences[record.id] = str(record.seq).upper()
        except Exception as e:
            logger.error(f"Error reading FASTA file: {e}")
            raise
        logger.info(f"Loaded {len(sequences)} reference sequences from {fasta_path}")
        return cls(sequences)

    @classmethod
    def from_alignments(cls, alignment_paths: Dict[str, Path]) -> "SequenceCatalog":
        """Build a catalog from the seed rows of member alignments.

        The seed row is the one whose defline id equals the identifier the
        file is named after; the first row is used when none matches. Gaps
        are removed. Unreadable or empty files are skipped.

        Args:
            alignment_paths: Identifier -> alignment file path
        """
        sequences = {}
        for identifier, path in alignment_paths.items():
            try:
                alignment = read_alignment(path)
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable alignment {path}: {e}")
                continue

            if not alignment:
                logger.warning(f"Alignment {path} holds no sequences, skipping seed {identifier}")
                continue

            seed_row = None
            for defline, residues in alignment.items():
                if defline.split()[:1] == [identifier]:
                    seed_row = residues
                    break
            if seed_row is None:
                logger.debug(f"No row named {identifier} in {path}, using first row as seed")
                seed_row = next(iter(alignment.values()))

            sequences[identifier] = ungap(seed_row).upper()

        logger.info(f"Collected {len(sequences)} seed sequences from {len(alignment_paths)} alignments")
        return cls(sequences)

    def find_seq(self, identifier: str) -> str:
        """Return the residues for identifier.

        Raises:
            KeyError: If the identifier is unknown
        """
        try:
            return self._sequences[identifier]
        except KeyError:
            raise KeyError(f"No sequence found for identifier {identifier}") from None

    def lengths(self, identifiers: Optional[Iterable[str]] = None) -> Dict[str, int]:
        """Residue counts for the given identifiers, skipping unknown ones."""
        if identifiers is None:
            identifiers = self._sequences.keys()
        lengths = {}
        for identifier in identifiers:
            try:
                lengths[identifier] = len(self.find_seq(identifier))
            except KeyError:
                logger.warning(f"No sequence for {identifier}, its hits will be skipped")
        return lengths

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._sequences

    def __len__(self) -> int:
        return len(self._sequences)
