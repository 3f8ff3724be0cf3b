"""All-vs-all BLAST search over seed sequences."""

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from io import StringIO
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from Bio import SearchIO, SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from .config import ExternalToolError
from .sequences import SequenceCatalog

logger = logging.getLogger(__name__)


@dataclass
class HitRecord:
    """One BLAST hit of a query against a target.

    segments holds one (query_covered_length, hit_covered_length) pair per HSP.
    """
    query_id: str
    target_id: str
    segments: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def query_coverage(self) -> int:
        return sum(q for q, _ in self.segments)

    @property
    def hit_coverage(self) -> int:
        return sum(h for _, h in self.segments)


class BlastSearchClient:
    """Builds the seed database and runs the all-vs-all blastn search."""

    def __init__(self, blastn_bin: str = "blastn", makeblastdb_bin: str = "makeblastdb",
                 num_threads: Optional[int] = None):
        self.blastn_bin = blastn_bin
        self.makeblastdb_bin = makeblastdb_bin
        self.num_threads = num_threads or min(os.cpu_count() or 1, 8)

    def write_database(self, catalog: SequenceCatalog, identifiers: Iterable[str],
                       database_path: Path) -> List[str]:
        """Write the seed sequences to a FASTA file.

        Identifiers without a sequence in the catalog are skipped.

        Returns:
            Identifiers actually written
        """
        written = []
        with open(database_path, 'w') as f:
            for identifier in identifiers:
                try:
                    residues = catalog.find_seq(identifier)
                except KeyError:
                    logger.warning(f"No seed sequence for {identifier}, leaving it out of {database_path}")
                    continue
                record = SeqRecord(Seq(residues), id=identifier, description="")
                SeqIO.write(record, f, "fasta")
                written.append(identifier)

        logger.info(f"Wrote {len(written)} seed sequences to {database_path}")
        return written

    def create_database(self, database_path: Path) -> None:
        """Index a FASTA file as a nucleotide BLAST database."""
        cmd = [
            self.makeblastdb_bin,
            '-in', str(database_path),
            '-dbtype', 'nucl',
        ]
        logger.info(f"Going to run command {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, check=True, capture_output=True, text=True)
            logger.debug(f"makeblastdb output: {result.stdout}")
        except subprocess.CalledProcessError as e:
            logger.error(f"makeblastdb stderr: {e.stderr}")
            raise ExternalToolError(f"Failed to create BLAST database {database_path}: {e}") from e
        except FileNotFoundError:
            raise ExternalToolError(
                f"{self.makeblastdb_bin} command not found. Please ensure NCBI BLAST+ is installed.")

    def search(self, database_path: Path) -> Dict[str, List[HitRecord]]:
        """Run the database against itself and return hits per query.

        Args:
            database_path: FASTA file already indexed by create_database

        Returns:
            Query id -> ordered hit records; queries without hits map to []

        Raises:
            ExternalToolError: If blastn fails or reports nothing
        """
        cmd = [
            self.blastn_bin,
            '-query', str(database_path),
            '-db', str(database_path),
            '-outfmt', '5',
            '-num_threads', str(self.num_threads),
        ]
        logger.info(f"Going to run all vs all BLAST search on {database_path}")
        logger.debug(f"Running command {' '.join(cmd)}")

        try:
            blast_start_time = time.time()
            result = subprocess.run(cmd, check=True, capture_output=True, text=True)
            logger.debug(f"BLAST search completed in {time.time() - blast_start_time:.2f}s")
        except subprocess.CalledProcessError as e:
            logger.error(f"blastn stderr: {e.stderr}")
            raise ExternalToolError(f"BLAST search failed: {e}") from e
        except FileNotFoundError:
            raise ExternalToolError(
                f"{self.blastn_bin} command not found. Please ensure NCBI BLAST+ is installed.")

        if not result.stdout.strip():
            raise ExternalToolError("BLAST result empty")

        results_by_query = self.parse_report(result.stdout)
        if not results_by_query:
            raise ExternalToolError("BLAST report contains no query results")

        logger.info(f"Number of BLAST results: {len(results_by_query)}")
        return results_by_query

    @staticmethod
    def parse_report(report: str) -> Dict[str, List[HitRecord]]:
        """Parse BLAST XML output into hit records grouped by query.

        Hits without a target name are skipped.
        """
        results_by_query: Dict[str, List[HitRecord]] = {}

        try:
            for qresult in SearchIO.parse(StringIO(report), "blast-xml"):
                hits = results_by_query.setdefault(qresult.id, [])
                for hit in qresult:
                    if not hit.id:
                        logger.warning(f"Skipping unnamed hit for query {qresult.id}")
                        continue
                    segments = [(hsp.query_span, hsp.hit_span) for hsp in hit.hsps]
                    hits.append(HitRecord(qresult.id, hit.id, segments))
        except Exception as e:
            raise ExternalToolError(f"Could not parse BLAST report: {e}") from e

        return results_by_query
