"""
Command-line interface for band co-registration.

Usage:
    band-align [SOURCE_DIR] [DEST_DIR] [--config CONFIG] [--workers N]
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import AlignmentConfig
from .pipeline import CoregistrationPipeline

USAGE = "USAGE: band-align <src_dir> <dest_dir>"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Co-register the bands of multi-sensor captures using embedded calibration metadata',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # Align ./input into ./output
    band-align

    # Explicit directories, four worker threads
    band-align raw/ aligned/ --workers 4

    # Metadata alignment only, with diagnostic plots
    band-align raw/ aligned/ --no-ecc --plots
'''
    )

    parser.add_argument(
        'source',
        nargs='?',
        default='input',
        help='Directory containing the band images (default: input)'
    )

    parser.add_argument(
        'destination',
        nargs='?',
        default='output',
        help='Directory receiving the aligned images (default: output)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--workers', '-j',
        type=int,
        default=None,
        help='Threads used per capture group (overrides config)'
    )

    parser.add_argument(
        '--no-ecc',
        action='store_true',
        help='Disable the photometric refinement stage'
    )

    parser.add_argument(
        '--plots',
        action='store_true',
        help='Write overlay and offset plots to <destination>/report'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    return parser


def main(argv=None) -> int:
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    source = Path(args.source)
    if not source.is_dir():
        print(USAGE)
        print("---")
        return 1

    try:
        config = AlignmentConfig.from_yaml(args.config) if args.config else AlignmentConfig()
        if args.workers is not None:
            config.workers = args.workers
        if args.no_ecc:
            config.ecc_enabled = False
        config.validate()
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except (ValueError, TypeError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    pipeline = CoregistrationPipeline(str(source), args.destination, config)
    summary = pipeline.run_full_pipeline()

    if args.plots:
        from .visualization import create_alignment_report
        create_alignment_report(summary, str(Path(args.destination) / 'report'))

    print("\n" + "=" * 60)
    print("CO-REGISTRATION SUMMARY")
    print("=" * 60)
    print(f"Capture groups:         {len(summary.groups)}")
    print(f"Images processed:       {len(summary.results)}")
    print(f"Images written:         {summary.written}")
    print(f"Images failed:          {summary.failed}")
    print(f"Refinement fallbacks:   {summary.refinement_failures}")
    print("=" * 60)

    return 0


if __name__ == '__main__':
    sys.exit(main())
