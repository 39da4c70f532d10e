from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

import requests

from .comic import DEFAULT_BASE_URL, selector_url
from .config import DEFAULT_PERSISTENCE_DIRNAME
from .convert.comic_html import parse_comic
from .http_client import FetchError, HttpClient
from .registry import SessionRegistry
from .store import JsonFileStorage

LOGGER = logging.getLogger("ff_dilbert.cli")

CLIENT_STORAGE_FILENAME = "client-storage.json"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


class JsonLinesChannel:
    """Message channel speaking one JSON object per line."""

    def __init__(self, out: TextIO) -> None:
        self._out = out

    def send(self, notification: str, payload: dict[str, Any]) -> None:
        line = json.dumps(
            {"notification": notification, "payload": payload},
            ensure_ascii=False,
            default=str,
        )
        self._out.write(line + "\n")
        self._out.flush()


def parse_message(line: str) -> tuple[str, dict[str, Any]] | None:
    line = line.strip()
    if not line:
        return None
    try:
        message = json.loads(line)
    except json.JSONDecodeError as e:
        LOGGER.warning("Ignoring malformed message: %s", e)
        return None
    if not isinstance(message, dict) or not isinstance(
        message.get("notification"), str
    ):
        LOGGER.warning("Ignoring message without a notification name")
        return None
    payload = message.get("payload")
    return message["notification"], payload if isinstance(payload, dict) else {}


async def serve(
    registry: SessionRegistry,
    stream: TextIO,
) -> None:
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task[None]] = set()
    try:
        while True:
            line = await loop.run_in_executor(None, stream.readline)
            if not line:
                break
            parsed = parse_message(line)
            if parsed is None:
                continue
            task = loop.create_task(registry.dispatch(*parsed))
            pending.add(task)
            task.add_done_callback(pending.discard)
        if pending:
            await asyncio.gather(*pending)
    finally:
        registry.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="ff-dilbert")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    fetch_p = sub.add_parser("fetch", help="Fetch one comic and print it as JSON")
    fetch_p.add_argument(
        "--comic",
        default="latest",
        help="YYYY-MM-DD, first, random or latest (default: latest)",
    )
    fetch_p.add_argument("--base-url", default=DEFAULT_BASE_URL)
    fetch_p.add_argument("--timeout", type=int, default=45)

    parse_p = sub.add_parser(
        "parse",
        help="Parse a saved comic page offline and print it as JSON",
    )
    parse_p.add_argument("--in", dest="in_path", type=Path, required=True)

    serve_p = sub.add_parser(
        "serve",
        help=(
            "Run the session registry over a JSON-lines channel on "
            "stdin/stdout"
        ),
    )
    serve_p.add_argument(
        "--persistence-path",
        type=Path,
        default=None,
        help="Base directory for server persistence (default: ./.store)",
    )
    serve_p.add_argument(
        "--client-storage",
        type=Path,
        default=None,
        help=(
            "JSON file backing client/electron persistence "
            "(default: <persistence-path>/client-storage.json)"
        ),
    )
    serve_p.add_argument(
        "--user-agent",
        default=None,
        help="Host user agent used when a client config carries none",
    )
    serve_p.add_argument("--timeout", type=int, default=45)

    args = parser.parse_args(argv)
    _configure_logging(bool(args.verbose))

    if args.cmd == "fetch":
        url = selector_url(args.comic, base_url=args.base_url)
        if url is None:
            print(f"Unknown comic selector: {args.comic}", file=sys.stderr)
            return 2
        http = HttpClient(requests.Session(), timeout_s=args.timeout)
        try:
            body = http.fetch_text(url)
        except FetchError as e:
            print(str(e), file=sys.stderr)
            return 2
        comic = parse_comic(body)
        _print_json(comic.to_dict())
        if not comic.loaded:
            print("comic id missing from page", file=sys.stderr)
            return 3
        return 0

    if args.cmd == "parse":
        try:
            html = args.in_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            print(str(e), file=sys.stderr)
            return 2
        _print_json(parse_comic(html).to_dict())
        return 0

    if args.cmd == "serve":
        base_path = args.persistence_path or (
            Path.cwd() / DEFAULT_PERSISTENCE_DIRNAME
        )
        client_storage_path = (
            args.client_storage or base_path / CLIENT_STORAGE_FILENAME
        )
        channel = JsonLinesChannel(sys.stdout)
        registry = SessionRegistry(
            channel.send,
            http=HttpClient(requests.Session(), timeout_s=args.timeout),
            client_storage=JsonFileStorage(client_storage_path),
            default_persistence_path=args.persistence_path,
            default_user_agent=args.user_agent,
        )
        try:
            asyncio.run(serve(registry, sys.stdin))
        except KeyboardInterrupt:
            return 130
        return 0

    return 2
