"""
Tests for greedy profile-alignment merging.
"""

import subprocess
import pytest
from pathlib import Path
from unittest.mock import Mock, patch, call

from orthologize.clustering import Cluster
from orthologize.config import ExternalToolError, OrthologizeConfig
from orthologize.merging import ClusterMerger, ClusterResult, profile_align
from orthologize.parallel import ParallelExecutor
from orthologize.utils import read_alignment


CLOSE = ">1\nACGTACGTAC\n>2\nACGTACGTAA\n"  # one mismatch in ten sites
IDENTICAL = ">1\nACGTACGTAC\n>2\nACGTACGTAC\n>3\nACGTACGTAC\n"
DISTANT = ">1\nACGTACGTAC\n>2\nTTTTTTTTTT\n"


class TestProfileAlign:
    """Test suite for the MUSCLE wrapper."""

    @patch('orthologize.merging.subprocess.run')
    def test_returns_stdout(self, mock_run):
        """Test the aligner's stdout is returned and the command is profile mode."""
        mock_run.return_value = Mock(stdout=IDENTICAL)

        assert profile_align("a.fa", "b.fa", muscle_bin="muscle3") == IDENTICAL

        cmd = mock_run.call_args[0][0]
        assert cmd[0] == "muscle3"
        assert cmd[1:6] == ['-profile', '-in1', 'a.fa', '-in2', 'b.fa']

    @patch('orthologize.merging.subprocess.run')
    def test_failure_is_fatal(self, mock_run):
        """Test a failing aligner raises ExternalToolError."""
        mock_run.side_effect = subprocess.CalledProcessError(1, ['muscle'], stderr="boom")
        with pytest.raises(ExternalToolError, match="failed"):
            profile_align("a.fa", "b.fa")

    @patch('orthologize.merging.subprocess.run')
    def test_missing_binary_is_fatal(self, mock_run):
        """Test a missing aligner raises ExternalToolError."""
        mock_run.side_effect = FileNotFoundError()
        with pytest.raises(ExternalToolError, match="not found"):
            profile_align("a.fa", "b.fa")

    @patch('orthologize.merging.subprocess.run')
    def test_empty_output_is_fatal(self, mock_run):
        """Test an aligner printing nothing raises ExternalToolError."""
        mock_run.return_value = Mock(stdout="  \n")
        with pytest.raises(ExternalToolError, match="no output"):
            profile_align("a.fa", "b.fa")


class TestClusterMerger:
    """Test suite for ClusterMerger."""

    @pytest.fixture(autouse=True)
    def _workdir(self, tmp_path):
        self.workdir = tmp_path
        self.config = OrthologizeConfig(workdir=tmp_path, backbone_max_distance=0.1,
                                        num_workers=1, show_progress=False)
        for identifier in ["1", "2", "3"]:
            (tmp_path / f"{identifier}.fa").write_text(f">{identifier}\nACGTACGTAC\n")
        self.merger = ClusterMerger(self.config)

    def test_member_files_default_to_workdir(self):
        """Test identifiers without a manifest path resolve to <workdir>/<id>.fa."""
        files = self.merger.member_files(Cluster(1, ["1", "2"]))
        assert files == [self.workdir / "1.fa", self.workdir / "2.fa"]

    def test_member_files_use_manifest_paths(self, tmp_path):
        """Test manifest paths take precedence."""
        merger = ClusterMerger(self.config, {"1": "elsewhere/1.fa"})
        files = merger.member_files(Cluster(1, ["1", "2"]))
        assert files == [Path("elsewhere/1.fa"), self.workdir / "2.fa"]

    def test_member_files_sorted_by_size_when_enabled(self):
        """Test the optional ordering puts the largest alignment first."""
        (self.workdir / "3.fa").write_text(">3\nACGTACGTAC\n>4\nACGTACGTAC\n>5\nACGTACGTAC\n")
        config = OrthologizeConfig(workdir=self.workdir, sort_members=True, num_workers=1)
        merger = ClusterMerger(config)

        files = merger.member_files(Cluster(1, ["1", "2", "3"]))
        assert files[0] == self.workdir / "3.fa"

    @patch('orthologize.merging.profile_align')
    def test_singleton_passes_through(self, mock_align):
        """Test singletons are never aligned and keep their own file."""
        result = self.merger.merge_cluster(Cluster(4, ["3"]))

        mock_align.assert_not_called()
        assert result == ClusterResult(4, self.workdir / "3.fa")
        assert not (self.workdir / "cluster4.fa").exists()

    @patch('orthologize.merging.profile_align')
    def test_accepted_merges_chain_on_merged_file(self, mock_align):
        """Test each accepted merge becomes the base for the next one."""
        mock_align.return_value = IDENTICAL

        result = self.merger.merge_cluster(Cluster(7, ["1", "2", "3"]))

        merged = self.workdir / "cluster7.fa"
        assert mock_align.call_args_list == [
            call(self.workdir / "1.fa", self.workdir / "2.fa", "muscle"),
            call(merged, self.workdir / "3.fa", "muscle"),
        ]
        assert result.output_path == merged
        assert result.rejected == []
        assert len(result.merged) == 3
        # identical rows are deduplicated before writing
        assert read_alignment(merged) == {"1": "ACGTACGTAC"}

    @patch('orthologize.merging.profile_align')
    def test_all_rejected_keeps_seed_file(self, mock_align):
        """Test the seed file is the output when every merge is rejected."""
        mock_align.return_value = DISTANT

        result = self.merger.merge_cluster(Cluster(2, ["1", "2", "3"]))

        assert result.output_path == self.workdir / "1.fa"
        assert result.rejected == [self.workdir / "2.fa", self.workdir / "3.fa"]
        assert not (self.workdir / "cluster2.fa").exists()
        # rejection never advances the accumulator
        for c in mock_align.call_args_list:
            assert c[0][0] == self.workdir / "1.fa"

    @patch('orthologize.merging.profile_align')
    def test_rejected_member_is_not_retried(self, mock_align):
        """Test a member rejected early is dropped for good."""
        mock_align.side_effect = [DISTANT, IDENTICAL]

        result = self.merger.merge_cluster(Cluster(3, ["1", "2", "3"]))

        assert mock_align.call_count == 2
        assert result.rejected == [self.workdir / "2.fa"]
        assert result.output_path == self.workdir / "cluster3.fa"

    @patch('orthologize.merging.profile_align')
    def test_rejection_after_acceptance_keeps_merged_file(self, mock_align):
        """Test a late rejection leaves the merged file as the accumulator."""
        mock_align.side_effect = [IDENTICAL, DISTANT]

        result = self.merger.merge_cluster(Cluster(5, ["1", "2", "3"]))

        assert result.output_path == self.workdir / "cluster5.fa"
        assert result.merged == [self.workdir / "1.fa", self.workdir / "2.fa"]
        assert result.rejected == [self.workdir / "3.fa"]

    @patch('orthologize.merging.profile_align')
    def test_merge_step_rollback(self, mock_align):
        """Test a rejected step returns the accumulator it was given."""
        mock_align.return_value = DISTANT
        current = self.workdir / "1.fa"

        updated, accepted = self.merger.merge_step(current, self.workdir / "2.fa",
                                                   self.workdir / "cluster1.fa")

        assert updated == current
        assert accepted is False

    def test_threshold_is_exclusive(self):
        """Test a distance equal to the ceiling is rejected."""
        assert self.merger.accepts(0.09)
        assert not self.merger.accepts(0.1)
        assert not self.merger.accepts(0.5)
        assert not self.merger.accepts(float('nan'))

    @patch('orthologize.merging.profile_align')
    def test_acceptance_is_repeatable(self, mock_align):
        """Test merging the same pair twice gives the same decision."""
        mock_align.return_value = CLOSE
        config = OrthologizeConfig(workdir=self.workdir, backbone_max_distance=0.2, num_workers=1)
        merger = ClusterMerger(config)

        first = merger.merge_step(self.workdir / "1.fa", self.workdir / "2.fa", self.workdir / "c.fa")
        second = merger.merge_step(self.workdir / "1.fa", self.workdir / "2.fa", self.workdir / "c.fa")

        assert first == second == (self.workdir / "c.fa", True)

    @patch('orthologize.merging.profile_align')
    def test_empty_candidate_is_fatal(self, mock_align):
        """Test an aligner result without sequences aborts."""
        mock_align.return_value = "not fasta at all\n"
        with pytest.raises(ExternalToolError):
            self.merger.merge_cluster(Cluster(1, ["1", "2"]))

    @patch('orthologize.merging.profile_align')
    def test_aligner_failure_propagates(self, mock_align):
        """Test aligner errors are not swallowed."""
        mock_align.side_effect = ExternalToolError("muscle died")
        with pytest.raises(ExternalToolError, match="muscle died"):
            self.merger.merge_cluster(Cluster(1, ["1", "2"]))

    @patch('orthologize.merging.profile_align')
    def test_merge_all_sorted_by_cluster_id(self, mock_align):
        """Test results come back ordered by cluster id with their own files."""
        mock_align.return_value = IDENTICAL
        clusters = [Cluster(2, ["3"]), Cluster(1, ["1", "2"])]

        results = self.merger.merge_all(clusters, ParallelExecutor(num_workers=1, show_progress=False))

        assert [r.cluster_id for r in results] == [1, 2]
        assert results[0].output_path == self.workdir / "cluster1.fa"
        assert results[1].output_path == self.workdir / "3.fa"
