"""
Command-line interface for agentkit.

Sends log records and raw payloads to EigenDA using the environment-driven
``Settings`` (``AGENTKIT_EIGENDA__AUTH_TOKEN``, ``AGENTKIT_BATCHING__...``).

    agentkit log "agent started" --level info --tag boot
    agentkit post '{"step": 1}' --wait
    agentkit get <job-id>
    agentkit status <job-id>
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any, Sequence

import orjson

from ..adapters.eigenda import EigenDAAdapter
from ..core.settings import Settings
from ..core.types import LOG_LEVELS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentkit", description="Verifiable agent logging on EigenDA"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    log_p = sub.add_parser("log", help="Log a message through the batched path")
    log_p.add_argument("message")
    log_p.add_argument("--level", choices=LOG_LEVELS, default="info")
    log_p.add_argument("--tag", action="append", default=[], dest="tags")
    log_p.add_argument("--metadata", help="JSON object attached to the record")

    post_p = sub.add_parser("post", help="Upload a JSON value directly")
    post_p.add_argument("data", help="JSON value; plain text is sent as a string")
    post_p.add_argument("--wait", action="store_true", help="Wait for confirmation")

    get_p = sub.add_parser("get", help="Fetch a stored payload")
    get_p.add_argument("job_id")

    status_p = sub.add_parser("status", help="Show the status of a job")
    status_p.add_argument("job_id")
    return parser


def _parse_json(text: str, *, strict: bool) -> Any:
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        if strict:
            raise ValueError(f"Invalid JSON: {text!r}") from None
        return text


def _emit(value: Any) -> None:
    print(orjson.dumps(value, option=orjson.OPT_INDENT_2).decode())


async def _run(args: argparse.Namespace, adapter: EigenDAAdapter) -> int:
    async with adapter:
        if args.command == "log":
            metadata = _parse_json(args.metadata, strict=True) if args.metadata else None
            if metadata is not None and not isinstance(metadata, dict):
                raise ValueError("--metadata must be a JSON object")
            future = adapter.log(
                args.message, level=args.level, tags=args.tags, metadata=metadata
            )
            # shutdown() raises ShutdownFlushError instead of leaving the future pending
            await adapter.shutdown()
            entry = future.result()
            _emit({"id": entry.id, "status": dict(entry.status.data)})
        elif args.command == "post":
            result = await adapter.post(
                _parse_json(args.data, strict=False),
                wait_for_confirmation=args.wait,
            )
            _emit({"job_id": result.job_id, "timestamp": result.timestamp})
        elif args.command == "get":
            data = await adapter.get(args.job_id)
            if data is None:
                print(f"Job {args.job_id} not found", file=sys.stderr)
                return 1
            _emit(data)
        elif args.command == "status":
            status = await adapter.store.get_status(args.job_id)
            _emit({"job_id": args.job_id, "status": status.value})
    return 0


async def main(
    argv: Sequence[str] | None = None, *, adapter: EigenDAAdapter | None = None
) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    try:
        return await _run(args, adapter or EigenDAAdapter.from_settings(Settings()))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cli_main() -> int:
    """CLI main function for non-async entry."""
    return asyncio.run(main())


if __name__ == "__main__":
    sys.exit(cli_main())
