"""
Command-line interface for orthologize.

Creates orthologous clusters of aligned sequences: seed sequences of the
listed alignments are searched against each other, alignments whose seeds
hit each other are clustered, and each cluster is merged by profile
alignment.
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import (
    BACKBONE_MAX_DISTANCE,
    DEFAULT_OUTFILE,
    MERGE_OVERLAP,
    OrthologizeConfig,
    OrthologizeError,
)
from .pipeline import OrthologizePipeline


def setup_logging(verbose: bool = False, quiet: bool = False):
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='orthologize',
        description='Assess orthology among candidate alignments and merge them into orthologous clusters',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  orthologize -i aligned.txt                      # writes {DEFAULT_OUTFILE} in the current directory
  orthologize -i aligned.txt -w work -o clusters.txt
  orthologize -i aligned.txt --sequences seeds.fasta -j 8
  orthologize -i aligned.txt --merge-overlap 0.6 --max-distance 0.05
        """
    )

    # Input / output
    parser.add_argument(
        '-i', '--infile',
        required=True,
        help='List of alignment file locations, one per line, each named <seed id>.fa'
    )
    parser.add_argument(
        '-o', '--outfile',
        default=DEFAULT_OUTFILE,
        help=f'Name of the output file inside the working directory (default: {DEFAULT_OUTFILE})'
    )
    parser.add_argument(
        '-w', '--workdir',
        default='.',
        help='Working directory for the seed database and merged alignments (default: .)'
    )
    parser.add_argument(
        '--sequences',
        help='Reference FASTA of seed sequences (default: take seeds from the alignments)'
    )

    # Algorithm parameters
    parser.add_argument(
        '--merge-overlap',
        type=float,
        default=MERGE_OVERLAP,
        help=f'Minimum fraction of query and hit covered by HSPs (default: {MERGE_OVERLAP})'
    )
    parser.add_argument(
        '--max-distance',
        type=float,
        default=BACKBONE_MAX_DISTANCE,
        help=f'Reject merges whose mean pairwise distance reaches this (default: {BACKBONE_MAX_DISTANCE})'
    )
    parser.add_argument(
        '--sort-members',
        action='store_true',
        help='Merge each cluster starting from its largest alignment instead of the lowest seed id'
    )

    # Execution
    parser.add_argument(
        '-j', '--threads',
        type=int,
        default=None,
        help='Number of worker processes (default: all CPUs)'
    )
    parser.add_argument('--blastn', default='blastn', help='blastn executable (default: blastn)')
    parser.add_argument('--makeblastdb', default='makeblastdb',
                        help='makeblastdb executable (default: makeblastdb)')
    parser.add_argument('--muscle', default='muscle', help='MUSCLE executable (default: muscle)')

    # Verbosity
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Suppress progress output'
    )
    return parser


def main():
    """Main entry point for the orthologize CLI."""
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.verbose, args.quiet)

    try:
        settings = dict(
            workdir=Path(args.workdir),
            outfile=args.outfile,
            merge_overlap=args.merge_overlap,
            backbone_max_distance=args.max_distance,
            show_progress=not args.quiet,
            sort_members=args.sort_members,
            sequences=Path(args.sequences) if args.sequences else None,
            blastn_bin=args.blastn,
            makeblastdb_bin=args.makeblastdb,
            muscle_bin=args.muscle,
        )
        if args.threads is not None:
            settings['num_workers'] = args.threads
        config = OrthologizeConfig(**settings)

        results = OrthologizePipeline(config).run(args.infile)

        merged = sum(1 for r in results if len(r.merged) > 1)
        logging.info(f"Orthologize complete: {len(results)} clusters, {merged} merged alignments, "
                     f"results in {config.outfile_path}")

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(1)
    except OrthologizeError as e:
        logging.error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
