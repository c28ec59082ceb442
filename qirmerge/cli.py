"""Command line interface for composing QIR reports."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
import sys
from typing import Sequence

from .config import configure_logging, load_settings
from .exceptions import QirMergeError
from .models import MergeRequest
from .pipeline import MergeContext, merge_report


def _run_merge(args: argparse.Namespace) -> int:
    request_path = Path(args.request).expanduser()
    try:
        payload = json.loads(request_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"error: cannot read request {request_path}: {exc}", file=sys.stderr)
        return 2
    if not isinstance(payload, dict):
        print("error: request must be a JSON object", file=sys.stderr)
        return 2

    context = MergeContext(settings=args.settings)
    try:
        request = MergeRequest.from_payload(payload)
        merged = asyncio.run(merge_report(request, context=context))
    except QirMergeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    output = Path(args.output).expanduser() if args.output else Path.cwd() / merged.filename
    if output.is_dir():
        output = output / merged.filename
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(merged.raw_bytes)
    print(f"{output} ({merged.page_count} pages)")
    return 0


def _run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "apps.backend.app.main:app",
        host=args.host or args.settings.host,
        port=args.port or args.settings.port,
        log_level=args.settings.log_level.lower(),
    )
    return 0


def _create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qirmerge", description="QIR report merge tool")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    merge = subparsers.add_parser("merge", help="Compose a report from a JSON request file")
    merge.add_argument("request", help="JSON file shaped like the POST /merge body")
    merge.add_argument(
        "output",
        nargs="?",
        help="Output PDF path or directory (defaults to the report filename)",
    )
    merge.set_defaults(handler=_run_merge)

    serve = subparsers.add_parser("serve", help="Run the HTTP merge server")
    serve.add_argument("--host", help="Interface to bind (QIRMERGE_HOST)")
    serve.add_argument("--port", type=int, help="Port to listen on (PORT)")
    serve.set_defaults(handler=_run_serve)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _create_parser()
    args = parser.parse_args(argv)
    args.settings = load_settings()
    configure_logging(args.settings.log_level)
    return args.handler(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
