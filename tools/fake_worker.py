#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import os
import sys
import time
from pathlib import Path


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fake worker for wavesched integration tests")
    parser.add_argument("--sleep", type=float, default=0.0)
    parser.add_argument("--fail-always", action="store_true")
    parser.add_argument("--fail-first", action="store_true")
    parser.add_argument("--journal", type=Path)
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    task_id = os.environ.get("WAVESCHED_TASK_ID", "?")
    previous_error = os.environ.get("WAVESCHED_PREVIOUS_ERROR")

    if args.journal:
        with args.journal.open("a", encoding="utf-8") as f:
            f.write(f"start {task_id}\n")
    if args.sleep > 0:
        time.sleep(args.sleep)
    if args.journal:
        with args.journal.open("a", encoding="utf-8") as f:
            f.write(f"end {task_id}\n")

    payload = {"task_id": task_id, "retry_of": previous_error, "timestamp": time.time()}
    print(json.dumps(payload), flush=True)

    if args.fail_always:
        print("forced failure", file=sys.stderr, flush=True)
        return 1
    if args.fail_first and previous_error is None:
        print("first attempt failure", file=sys.stderr, flush=True)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
