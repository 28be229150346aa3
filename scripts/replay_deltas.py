#!/usr/bin/env python3
"""Replay a recorded delta log through a subscription.

Reads newline-delimited JSON deltas, feeds them into a TelemetryHub at their
recorded pace (optionally sped up) and prints every delivered value as a
delta. Use this to check what a subscribe command would receive.

Example::

    python scripts/replay_deltas.py deltas.jsonl \
        --subscribe '{"context": "vessels.self", "subscribe": [{"path": "navigation.*", "period": 1000}]}'
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyskbus import HubConfig, NormalizedRecord, TelemetryHub, to_delta  # noqa: E402
from pyskbus.exceptions import DeltaParseError  # noqa: E402

_LOG = logging.getLogger("replay_deltas")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("log", type=Path, help="File with one JSON delta per line")
    parser.add_argument("--subscribe", required=True, help="Subscribe command as JSON")
    parser.add_argument("--self-context", default=None, help="Context matched by 'vessels.self'")
    parser.add_argument("--delay", type=float, default=0.0, help="Seconds to wait between deltas")
    parser.add_argument("--linger", type=float, default=1.5, help="Seconds to keep running after the last delta")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _read_deltas(path: Path) -> list[dict[str, Any]]:
    deltas: list[dict[str, Any]] = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            deltas.append(json.loads(line))
        except json.JSONDecodeError:
            _LOG.warning("Skipping line %d: not JSON", lineno)
    return deltas


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {"mqtt_enabled": False}
    if args.self_context:
        overrides["self_context"] = args.self_context
    config = HubConfig.from_env(**overrides)
    command = json.loads(args.subscribe)
    delivered = 0

    def on_record(record: NormalizedRecord) -> None:
        nonlocal delivered
        delivered += 1
        print(json.dumps(to_delta(record), default=str))

    def on_warn(message: str) -> None:
        print(f"warning: {message}", file=sys.stderr)

    async with TelemetryHub(config) as hub:
        subscription = hub.subscribe(command, on_warn, on_record)
        for delta in _read_deltas(args.log):
            try:
                hub.handle_delta(delta)
            except DeltaParseError as exc:
                _LOG.warning("Skipping delta: %s", exc)
            if args.delay:
                await asyncio.sleep(args.delay)
        await asyncio.sleep(args.linger)
        subscription.release()

    _LOG.info("Delivered %d values", delivered)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
