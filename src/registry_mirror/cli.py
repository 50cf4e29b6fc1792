"""Run a mirror batch from a JSON file without starting the HTTP server.

The file uses the same shape as the HTTP request body::

    {"mirrors": [{"src": "postgres", "dst": "example.com/r/postgres"}], "parallelism": 2}

Prints the batch response as JSON. Exits 0 when every copy succeeded, 1 when any
failed, and 2 when the file cannot be read or is invalid.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from fastapi import HTTPException

from .api import decode_mirror_request
from .batch import BatchCoordinator, BatchRequest, BatchResponse
from .core.config import ServiceConfig
from .core.copier import Copier, CraneCopier


def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(description="Copy a batch of container images between registries.")
    p.add_argument("file", help="JSON batch file, or '-' for stdin.")
    p.add_argument("--parallelism", type=int, default=None, help="Override the file's parallelism.")
    p.add_argument("--copy-binary", default=None, help="crane-compatible binary used for copies.")
    p.add_argument(
        "--crane-arg",
        action="append",
        default=None,
        help="Extra argument passed to every copy, e.g. --crane-arg=--platform=all. Repeatable.",
    )
    p.add_argument("--verbose", "-v", action="store_true", help="Log per-job progress to stderr.")
    return p.parse_args(argv)


def load_batch(path: str) -> BatchRequest:
    raw = sys.stdin.buffer.read() if path == "-" else Path(path).read_bytes()
    req = decode_mirror_request(raw)
    return BatchRequest.from_mirrors(
        (m.model_dump() for m in req.mirrors or []),
        parallelism=req.parallelism,
    )


async def run_batch(batch: BatchRequest, copier: Copier, default_parallelism: int) -> BatchResponse:
    coordinator = BatchCoordinator(copier, default_parallelism=default_parallelism)
    return await coordinator.run(batch)


def main(argv: Optional[List[str]] = None, copier: Optional[Copier] = None) -> int:
    args = parse_args(argv)
    config = ServiceConfig.from_env()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        batch = load_batch(args.file)
    except OSError as e:
        print(f"error: cannot read {args.file}: {e}", file=sys.stderr)
        return 2
    except HTTPException as e:
        print(f"error: {e.detail}", file=sys.stderr)
        return 2

    if args.parallelism is not None:
        if args.parallelism < 0:
            print("error: --parallelism must not be negative", file=sys.stderr)
            return 2
        batch.parallelism = args.parallelism

    copier = copier or CraneCopier(
        binary=args.copy_binary or config.copy_binary,
        extra_args=config.copy_args if args.crane_arg is None else args.crane_arg,
    )
    response = asyncio.run(run_batch(batch, copier, config.default_parallelism))

    print(json.dumps(response.to_dict(), indent=2))
    return 0 if response.ok else 1


def entrypoint() -> None:
    sys.exit(main())


if __name__ == "__main__":
    entrypoint()
