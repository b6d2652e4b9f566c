#!/usr/bin/env python3
"""
Example tracking workflow.

This demonstrates the complete pipeline:
1. Describe the object with a seed box
2. Track it through the clip on a background job, polling progress
3. Save the tracked data and query it frame by frame
"""

from pathlib import Path

from cliptrack import (
    BoundingBox,
    ClipTrackingPipeline,
    PersistenceAdapter,
    TrackingConfig,
    TrackingJob,
    VideoClip,
)


def example_tracking(video_path: str, x: float, y: float, width: float, height: float,
                     algorithm: str = "CSRT"):
    print("=" * 60)
    print("Object Tracking Workflow")
    print("=" * 60)

    # Step 1: Configuration
    config = TrackingConfig(
        algorithm=algorithm,
        bounding_box=BoundingBox.from_xywh(x, y, width, height),
        record_path=Path(video_path).stem + "_tracked.trk",
    )
    print(f"\n[Step 1] Seed box: {config.bounding_box.as_tuple()} ({config.algorithm})")

    # Step 2: Track on a background job
    print("\n[Step 2] Tracking...")
    persistence = PersistenceAdapter(config.record_path)
    with VideoClip(video_path) as clip:
        pipeline = ClipTrackingPipeline.from_config(config, persistence=persistence)
        job = TrackingJob(pipeline, clip)
        job.start()
        while not job.join(timeout=0.5):
            print(f"  {job.progress:5.1f}%", end="\r")

    if not job.succeeded:
        print(f"\n  ✗ Tracking failed: {job.exception}")
        return

    stats = job.result.get_stats()
    print(f"\n  ✓ {stats['n_tracked']} frames tracked, {stats['n_lost']} lost")

    # Step 3: Query saved data
    print(f"\n[Step 3] Reading back {config.record_path}")
    persistence.load()
    for frame_id in job.result.frame_ids()[:5]:
        record = persistence.get_tracked_data(frame_id)
        print(f"  frame {frame_id}: {record.bounding_box.as_tuple()}")

    print("\n" + "=" * 60)
    print("Workflow Complete!")
    print("=" * 60)


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 6:
        print("Usage: python example_tracking.py <video_file> <x> <y> <width> <height> [algorithm]")
        print()
        print("Example:")
        print("  python example_tracking.py ../videos/clip.mp4 120 80 60 90 KCF")
        sys.exit(1)

    video_file = sys.argv[1]
    x, y, w, h = (float(v) for v in sys.argv[2:6])
    algorithm = sys.argv[6] if len(sys.argv) > 6 else "CSRT"

    example_tracking(video_file, x, y, w, h, algorithm=algorithm)
