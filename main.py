#!/usr/bin/env python3
"""
Unified CLI entry point for cliptrack.

Usage:
    python main.py track <video_file> <config_file> [--output RECORD] [--start N --end M]
    python main.py show <record_file> [--frame N] [--export JSON]
    python main.py info <video_file>
"""

import argparse
import logging
import os
import sys
from pathlib import Path


def cmd_track(args):
    """Track the configured object through a video."""
    from cliptrack.errors import TrackingError
    from cliptrack.io import ConfigLoader, PersistenceAdapter, VideoClip
    from cliptrack.processing import ProcessingController
    from cliptrack.workflows import run_tracking

    try:
        config = ConfigLoader.load(args.config)
    except TrackingError as e:
        print(f"✗ Invalid configuration: {e}")
        sys.exit(1)

    if args.algorithm:
        config.algorithm = args.algorithm
    if args.start is not None or args.end is not None:
        config.process_interval = True
        config.start = args.start or 0
        config.end = args.end or 0

    record_path = args.output or config.record_path

    print(f"Tracking video: {args.video}")
    print(f"  Algorithm: {config.algorithm}")
    print(f"  Seed box: {config.bounding_box.as_tuple()}")
    if config.process_interval:
        print(f"  Interval: [{config.start}, {config.end or 'end'})")
    print(f"  Output: {record_path}")

    controller = ProcessingController()
    with VideoClip(args.video) as clip:
        try:
            tracked = run_tracking(config, clip, controller=controller,
                                   persistence=PersistenceAdapter(record_path))
        except TrackingError as e:
            print(f"\n✗ Tracking failed: {e}")
            sys.exit(1)

    stats = tracked.get_stats()
    print(f"\n✓ Tracked {stats['n_tracked']} frames ({stats['n_lost']} lost)")
    print(f"✓ Tracked data saved to: {record_path}")


def cmd_show(args):
    """Print tracked data from a saved record."""
    from cliptrack.errors import NotFound, TrackingError
    from cliptrack.io import PersistenceAdapter

    adapter = PersistenceAdapter(args.record)
    try:
        tracked = adapter.load()
    except TrackingError as e:
        print(f"✗ Could not read record: {e}")
        sys.exit(1)

    if args.export:
        tracked.export_json(args.export)
        print(f"✓ Exported {len(tracked)} frames to {args.export}")

    if args.frame is not None:
        try:
            record = adapter.get_tracked_data(args.frame)
        except NotFound as e:
            print(f"✗ {e}")
            sys.exit(1)
        box = record.bounding_box
        status = "lost" if record.is_lost else "tracked"
        print(f"Frame {record.frame_id} ({status}): "
              f"x1={box.x1:.1f} y1={box.y1:.1f} x2={box.x2:.1f} y2={box.y2:.1f} "
              f"rotation={record.rotation:.1f}")
        return

    stats = tracked.get_stats()
    print(f"Record: {args.record}")
    print(f"  Frames: {stats['n_frames']} ({tracked.first_frame} to {tracked.last_frame})")
    print(f"  Tracked: {stats['n_tracked']}")
    print(f"  Lost: {stats['n_lost']}")


def cmd_info(args):
    """Show video properties."""
    from cliptrack.io import get_video_info

    info = get_video_info(args.video)
    print(f"Video: {Path(args.video).name}")
    print(f"  Resolution: {info['width']}x{info['height']}")
    print(f"  Frames: {info['frames']}")
    print(f"  FPS: {info['fps']:.2f}")
    print(f"  Duration: {info['duration_seconds']:.2f} seconds")


def main():
    parser = argparse.ArgumentParser(
        description="cliptrack - Object Tracking Across Video Clips",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--log-level', default=os.getenv('CLIPTRACK_LOG_LEVEL', 'WARNING'),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging verbosity (default: $CLIPTRACK_LOG_LEVEL or WARNING)')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Track command
    parser_track = subparsers.add_parser('track',
        help='Track an object through a video and save the tracked data')
    parser_track.add_argument('video', help='Path to video file')
    parser_track.add_argument('config', help='Path to tracking configuration (JSON or binary)')
    parser_track.add_argument('--output', '-o', help='Record path (default: from config)')
    parser_track.add_argument('--algorithm', help='Override the tracker algorithm')
    parser_track.add_argument('--start', type=int, help='First frame of interval')
    parser_track.add_argument('--end', type=int, help='Frame after the last one tracked')
    parser_track.set_defaults(func=cmd_track)

    # Show command
    parser_show = subparsers.add_parser('show',
        help='Show tracked data from a saved record')
    parser_show.add_argument('record', help='Path to tracked data record')
    parser_show.add_argument('--frame', type=int, help='Frame to look up')
    parser_show.add_argument('--export', help='Also export the record as JSON to this path')
    parser_show.set_defaults(func=cmd_show)

    # Info command
    parser_info = subparsers.add_parser('info', help='Show video properties')
    parser_info.add_argument('video', help='Path to video file')
    parser_info.set_defaults(func=cmd_info)

    # Parse arguments
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s - %(levelname)s - %(message)s')

    # Execute command
    args.func(args)


if __name__ == '__main__':
    main()
