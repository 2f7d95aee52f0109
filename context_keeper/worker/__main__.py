"""
Worker CLI entry point.

Usage:
    python -m context_keeper.worker {sanitize,learn} [OPTIONS]

Options:
    --poll-interval N   Seconds between polls (default: from config)
    --once              Drain the queue and exit
    --max-jobs N        Stop after N jobs
"""
from __future__ import annotations

import argparse
import sys

from .runner import WORKER_KINDS, run_worker


def main(argv=None) -> int:
    """Main entry point for worker CLI."""
    parser = argparse.ArgumentParser(
        description="context-keeper worker - processes queued jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Deep validation worker with default settings
    python -m context_keeper.worker sanitize

    # Learning worker polling every 5 seconds
    python -m context_keeper.worker learn --poll-interval 5

    # Process whatever is queued and exit
    python -m context_keeper.worker sanitize --once
        """,
    )

    parser.add_argument(
        "kind",
        choices=WORKER_KINDS,
        help="Worker kind: sanitize (deep validation) or learn (learning extraction)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between poll cycles (default: from config)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Drain queued jobs and exit instead of polling forever",
    )
    parser.add_argument(
        "--max-jobs",
        type=int,
        default=None,
        help="Stop after processing this many jobs",
    )

    args = parser.parse_args(argv)

    try:
        processed = run_worker(
            kind=args.kind,
            poll_interval=args.poll_interval,
            once=args.once,
            max_jobs=args.max_jobs,
        )
        if args.once:
            print(f"Processed {processed} job(s)")
        return 0
    except KeyboardInterrupt:
        print("\nWorker stopped by user")
        return 0
    except Exception as e:
        print(f"Worker error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
