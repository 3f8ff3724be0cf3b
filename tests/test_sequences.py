"""
Tests for the seed sequence catalog.
"""

import pytest
from pathlib import Path

from orthologize.sequences import SequenceCatalog


class TestSequenceCatalog:
    """Test suite for SequenceCatalog."""

    def test_find_seq(self):
        """Test known identifiers resolve to their residues."""
        catalog = SequenceCatalog({"1": "ACGT"})
        assert catalog.find_seq("1") == "ACGT"
        assert "1" in catalog
        assert len(catalog) == 1

    def test_find_seq_unknown_raises(self):
        """Test unknown identifiers raise KeyError."""
        catalog = SequenceCatalog({"1": "ACGT"})
        with pytest.raises(KeyError, match="No sequence found"):
            catalog.find_seq("2")

    def test_lengths_skip_unknown(self):
        """Test lengths only cover resolvable identifiers."""
        catalog = SequenceCatalog({"1": "ACGT", "2": "AC"})
        assert catalog.lengths(["1", "2", "3"]) == {"1": 4, "2": 2}
        assert catalog.lengths() == {"1": 4, "2": 2}

    def test_from_fasta(self, tmp_path):
        """Test loading a reference FASTA keyed by record id."""
        fasta = tmp_path / "seeds.fasta"
        fasta.write_text(">1 first\nacgt\n>2\nGGCC\n>1 again\nTTTT\n")

        catalog = SequenceCatalog.from_fasta(fasta)

        assert catalog.find_seq("1") == "ACGT"
        assert catalog.find_seq("2") == "GGCC"
        assert len(catalog) == 2

    def test_from_alignments_uses_seed_row(self, tmp_path):
        """Test the row named after the file's seed is taken, without gaps."""
        path = tmp_path / "42.fa"
        path.write_text(">7\nAC--GT\n>42 seed taxon\n-ACG-T\n")

        catalog = SequenceCatalog.from_alignments({"42": path})

        assert catalog.find_seq("42") == "ACGT"

    def test_from_alignments_falls_back_to_first_row(self, tmp_path):
        """Test the first row is used when no row matches the seed id."""
        path = tmp_path / "42.fa"
        path.write_text(">7\nAC--GT\n>8\nTTTTTT\n")

        catalog = SequenceCatalog.from_alignments({"42": path})

        assert catalog.find_seq("42") == "ACGT"

    def test_from_alignments_skips_missing_and_empty(self, tmp_path):
        """Test unreadable or empty alignments are left out."""
        empty = tmp_path / "2.fa"
        empty.write_text("")
        good = tmp_path / "3.fa"
        good.write_text(">3\nACGT\n")

        catalog = SequenceCatalog.from_alignments({
            "1": tmp_path / "1.fa",
            "2": empty,
            "3": good,
        })

        assert "1" not in catalog
        assert "2" not in catalog
        assert catalog.find_seq("3") == "ACGT"
