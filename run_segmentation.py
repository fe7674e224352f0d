#!/usr/bin/env python3
"""
Customer Segmentation - Main Runner
===================================

Command-line interface for running and reporting customer segmentation.

Usage:
    python run_segmentation.py --task sample-data --database-url sqlite:///retail.db
    python run_segmentation.py --task segment --n-clusters 4
    python run_segmentation.py --task report --output outputs

Examples:
    # Seed a local database with 500 synthetic customers
    python run_segmentation.py --task sample-data --customers 500

    # Segment into 5 clusters with a fixed seed
    python run_segmentation.py --task segment --n-clusters 5 --seed 42

    # Report on the stored segmentation
    python run_segmentation.py --task report
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, List
from loguru import logger

from retail_segmentation.common import Reporter, seed_sample_data
from retail_segmentation.config import Settings, load_settings, setup_logging
from retail_segmentation.customer_segmentation import SegmentAnalyzer, SegmentationOrchestrator
from retail_segmentation.exceptions import InsufficientDataError
from retail_segmentation.storage import SegmentStore


def build_store(settings: Settings) -> SegmentStore:
    store = SegmentStore(settings.database_url, echo=settings.database_echo)
    store.create_schema()
    return store


def write_report(store: SegmentStore, output_dir: str, run: Optional[dict] = None, metrics: Optional[dict] = None) -> dict:
    """Profile the stored segmentation and write CSV/JSON/HTML reports."""
    assignments = store.get_assignments_frame()
    segments = store.get_segment_summaries()

    analyzer = SegmentAnalyzer()
    tests = analyzer.test_feature_differences(assignments) if not assignments.empty else {}

    if not assignments.empty:
        logger.info("\n" + analyzer.generate_summary(assignments))

    reporter = Reporter(output_dir=output_dir)
    results = {
        'assignments': assignments,
        'segments': segments,
        'metrics': metrics or {},
        'statistical_tests': tests,
        'run': run or {},
    }
    reporter.generate_segmentation_report(results, 'customer_segments')
    return results


def run_segmentation(args, settings: Settings) -> dict:
    """Run customer segmentation pipeline."""
    logger.info("Starting Customer Segmentation Pipeline")

    store = build_store(settings)
    orchestrator = SegmentationOrchestrator.from_settings(store, settings, random_state=args.seed)

    result = orchestrator.run(num_clusters=args.n_clusters or settings.num_clusters)

    run = {
        'iterations': result.iterations,
        'converged': result.converged,
        'inertia': result.inertia,
        'feature_ranges': result.feature_ranges,
    }
    write_report(store, args.output, run=run, metrics=result.metrics)

    silhouette = result.metrics.get('silhouette_score')
    if silhouette is not None:
        logger.info(f"Silhouette Score: {silhouette:.3f}")

    logger.info(f"Segmentation complete. Results saved to {args.output}")
    return result.to_dict()


def run_report(args, settings: Settings) -> dict:
    """Report on the segmentation already stored."""
    store = build_store(settings)
    results = write_report(store, args.output)

    if not results['segments']:
        logger.warning("No stored segmentation found. Run --task segment first.")

    return results


def run_sample_data(args, settings: Settings) -> dict:
    """Seed the database with synthetic customers and purchases."""
    store = build_store(settings)
    n_customers, n_purchases = seed_sample_data(store, n_customers=args.customers, seed=args.seed)
    return {'customers': n_customers, 'purchases': n_purchases}


def parse_args(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description='Customer Segmentation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--task',
        choices=['segment', 'report', 'sample-data'],
        required=True,
        help='Task to run'
    )

    parser.add_argument(
        '--config',
        type=str,
        default='config/settings.yaml',
        help='Path to configuration file'
    )

    parser.add_argument(
        '--database-url',
        type=str,
        default=None,
        help='SQLAlchemy database URL (overrides configuration)'
    )

    parser.add_argument(
        '--output',
        type=str,
        default='outputs',
        help='Output directory for reports'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    # Segmentation options
    parser.add_argument(
        '--n-clusters',
        type=int,
        default=None,
        help='Number of clusters (default from configuration)'
    )

    parser.add_argument(
        '--max-iterations',
        type=int,
        default=None,
        help='Iteration cap for K-Means'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for K-Means++ seeding and sample data'
    )

    # Sample data options
    parser.add_argument(
        '--customers',
        type=int,
        default=500,
        help='Number of synthetic customers to generate'
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    settings = load_settings(args.config)
    if args.database_url:
        settings.database_url = args.database_url
    if args.max_iterations:
        settings.max_iterations = args.max_iterations
    if args.log_level:
        settings.log_level = args.log_level

    setup_logging(settings.log_level)
    Path(args.output).mkdir(parents=True, exist_ok=True)

    try:
        if args.task == 'segment':
            run_segmentation(args, settings)

        elif args.task == 'report':
            run_report(args, settings)

        elif args.task == 'sample-data':
            run_sample_data(args, settings)

    except InsufficientDataError as e:
        logger.error(f"{e.message} Lower --n-clusters or add more customer data.")
        return 2

    return 0


if __name__ == '__main__':
    sys.exit(main())
