"""
VacantCourt - Command Line Interface

Monitors court occupancy from a camera or video, lists complexes and
saves court region configuration.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import SessionError, StatusUpdateError
from .store.base import CourtStore
from .store.models import PointData
from .utils.config import ConfigManager

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_argparser() -> argparse.ArgumentParser:
    """Setup command line argument parser."""
    parser = argparse.ArgumentParser(
        description='Live Court Occupancy Detection',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # Monitor a complex from the default camera
  python main.py run riverside

  # Replay a recording against a local fixture instead of Firestore
  python main.py --store fixture --fixture complexes.yaml run riverside --source match.mp4

  # List complexes
  python main.py list

  # Save a court region (normalized x,y points)
  python main.py configure riverside --court "Court 1" --points "0.1,0.1;0.5,0.1;0.5,0.6;0.1,0.6"
        '''
    )
    parser.add_argument(
        '-c', '--config',
        type=str,
        default=None,
        help='Path to configuration YAML file'
    )
    parser.add_argument(
        '--store',
        type=str,
        choices=['firestore', 'fixture'],
        default=None,
        help='Court store backend (default: from config)'
    )
    parser.add_argument(
        '--fixture',
        type=str,
        default=None,
        help='YAML fixture file for the fixture store'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    run_parser = subparsers.add_parser('run', help='Monitor court occupancy')
    run_parser.add_argument('complex_id', type=str, help='Complex document id')
    run_parser.add_argument(
        '--source',
        type=str,
        default=None,
        help='Camera index or video file (default: from config)'
    )
    run_parser.add_argument('--model', type=str, default=None, help='Path to YOLOv5 .tflite model')
    run_parser.add_argument('--labels', type=str, default=None, help='Path to label list')
    run_parser.add_argument(
        '--rotation',
        type=int,
        choices=[0, 90, 180, 270],
        default=None,
        help='Clockwise rotation that makes frames upright'
    )
    run_parser.add_argument(
        '--interval-ms',
        type=int,
        default=None,
        help='Minimum milliseconds between inference cycles (default: 3000)'
    )

    subparsers.add_parser('list', help='List complexes')

    configure_parser = subparsers.add_parser('configure', help='Save court regions')
    configure_parser.add_argument('complex_id', type=str, help='Complex document id')
    configure_parser.add_argument(
        '--court',
        action='append',
        required=True,
        help='Court name (repeat together with --points)'
    )
    configure_parser.add_argument(
        '--points',
        action='append',
        required=True,
        help='Normalized polygon as "x,y;x,y;x,y"'
    )

    return parser


def parse_points(text: str) -> List[PointData]:
    """Parse "x,y;x,y;..." into points."""
    points = []
    for pair in text.split(';'):
        pair = pair.strip()
        if not pair:
            continue
        parts = pair.split(',')
        if len(parts) != 2:
            raise ValueError(f"Invalid point: '{pair}'")
        points.append(PointData(float(parts[0]), float(parts[1])))
    return points


def build_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Load config files and apply command line overrides."""
    manager = ConfigManager(args.config)

    if args.store:
        manager.set('store.backend', args.store)
    if args.fixture:
        manager.set('store.fixture_path', args.fixture)

    if args.command == 'run':
        if args.source is not None:
            manager.set('video.source', args.source)
        if args.model:
            manager.set('detection.model_path', args.model)
        if args.labels:
            manager.set('detection.labels_path', args.labels)
        if args.rotation is not None:
            manager.set('video.rotation_degrees', args.rotation)
        if args.interval_ms is not None:
            manager.set('occupancy.inference_interval_ms', args.interval_ms)
    elif args.command == 'configure':
        # Persist region edits back to the fixture file
        manager.set('store.persist_fixture', True)

    return manager.to_dict()


def setup_logging(config: Dict[str, Any], verbose: bool = False) -> int:
    """
    Configure root logging from the logging section.

    Args:
        config: Configuration dictionary
        verbose: Force DEBUG regardless of the configured level

    Returns:
        The level applied to the root logger
    """
    logging_config = config.get('logging', {})
    level = logging.getLevelName(str(logging_config.get('level', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO
    if verbose:
        level = logging.DEBUG

    logging.basicConfig(level=level, format=logging_config.get('format', LOG_FORMAT))
    logging.getLogger().setLevel(level)
    return level


def build_store(config: Dict[str, Any]) -> CourtStore:
    """Create the configured court store."""
    store_config = config.get('store', {})
    backend = store_config.get('backend', 'firestore')

    if backend == 'fixture':
        from .store.memory_store import InMemoryCourtStore

        fixture_path = store_config.get('fixture_path')
        if not fixture_path:
            raise ValueError("The fixture store needs --fixture or store.fixture_path")
        return InMemoryCourtStore.from_yaml(fixture_path, persist=store_config.get('persist_fixture', False))

    if backend == 'firestore':
        from .store.firestore_store import FirestoreCourtStore

        return FirestoreCourtStore(config=config)

    raise ValueError(f"Unknown store backend: {backend}")


def _log_result(result) -> None:
    occupied = sorted(name for name, value in result.occupancy.items() if value)
    logger.info(
        f"{result.people} people detected; occupied courts: {', '.join(occupied) or 'none'}"
    )


def run_command(config: Dict[str, Any], store: CourtStore, complex_id: str) -> int:
    """Run a monitoring session until the source ends or is interrupted."""
    from .detection.detector import TFLiteDetector
    from .pipeline import CourtOccupancySession, run_on_source
    from .video_processing.video_handler import VideoFrameSource

    video_config = config.get('video', {})
    detector = TFLiteDetector(config=config)
    session = CourtOccupancySession(complex_id, store, detector, config, on_result=_log_result)

    try:
        session.start()
    except SessionError as e:
        logger.error(f"Cannot start monitoring: {e}")
        print(f"Error: {e}", file=sys.stderr)
        session.close()
        return 1

    try:
        with VideoFrameSource(
            video_config.get('source', 0),
            rotation_degrees=video_config.get('rotation_degrees', 0)
        ) as source:
            run_on_source(
                session,
                source,
                total_frames=source.total_frames,
                show_progress=not source.is_camera
            )
    finally:
        session.close()

    for name, status in sorted(session.statuses.items()):
        print(f"{name}: {status.value}")
    return 0


def list_command(store: CourtStore) -> int:
    """Print every complex and whether it still needs configuration."""
    records = store.list_complexes()
    if not records:
        print("No complexes found")
        return 0

    for record in records:
        note = " (has unconfigured courts)" if record.has_unconfigured_courts() else ""
        print(f"{record.id}\t{record.name}\t{len(record.courts)} courts{note}")
    return 0


def configure_command(store: CourtStore, complex_id: str, courts: List[str], points: List[str]) -> int:
    """Save court regions given on the command line."""
    if len(courts) != len(points):
        logger.error("Each --court needs a matching --points")
        return 1

    regions = {name: parse_points(text) for name, text in zip(courts, points)}
    count = store.save_court_regions(complex_id, regions)
    print(f"Saved {count} court regions for {complex_id}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    config = None
    error = None
    if args.config and not Path(args.config).exists():
        error = f"Config file not found: {args.config}"
    else:
        try:
            config = build_config(args)
        except (SessionError, ValueError) as e:
            error = f"Failed to load configuration: {e}"

    setup_logging(config or {}, args.verbose)
    if error:
        logger.error(error)
        return 1

    try:
        store = build_store(config)
    except (SessionError, ValueError) as e:
        logger.error(f"Failed to initialize: {e}")
        return 1

    try:
        if args.command == 'run':
            return run_command(config, store, args.complex_id)
        if args.command == 'list':
            return list_command(store)
        return configure_command(store, args.complex_id, args.court, args.points)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except (SessionError, StatusUpdateError, ValueError, IOError) as e:
        logger.error(f"Command failed: {e}")
        return 1
    finally:
        store.close()


if __name__ == '__main__':
    sys.exit(main())
