"""PECS Tutor JSON-lines server entry point.

Usage: python -m pecstutor.server

Reads JSON requests from stdin (one per line), writes JSON responses to stdout.
All logging goes to stderr to keep the protocol clean.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

from pydantic import ValidationError

from .handler import ServerHandler
from .protocol import Notification, Request, Response

logger = logging.getLogger("pecstutor.server")


async def handle_line(handler: ServerHandler, line_str: str) -> str:
    """Turn one request line into one response line."""
    try:
        msg = json.loads(line_str)
    except json.JSONDecodeError as e:
        return Response(id=0, error=f"Invalid JSON: {e}").to_json_line()

    if not isinstance(msg, dict):
        return Response(id=0, error="Request must be a JSON object").to_json_line()

    try:
        req = Request.from_dict(msg)
    except KeyError:
        return Response(id=msg.get("id", 0), error="Missing method").to_json_line()

    try:
        result = await handler.dispatch({"method": req.method, "params": req.params})
        resp = Response(id=req.id, result=result)
    except (ValueError, KeyError, TypeError, ValidationError) as e:
        logger.error("request %s (%s) failed: %s", req.id, req.method, e)
        resp = Response(id=req.id, error=str(e))
    return resp.to_json_line()


async def main(handler: ServerHandler | None = None) -> None:
    loop = asyncio.get_event_loop()

    def write_line(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    def write_notification(notification: Notification) -> None:
        write_line(notification.to_json_line())

    if handler is None:
        handler = ServerHandler(write_notification=write_notification)

    logger.info("pecstutor-server: ready")

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    while True:
        line = await reader.readline()
        if not line:
            break  # stdin closed

        line_str = line.decode("utf-8", errors="replace").strip()
        if not line_str:
            continue

        write_line(await handle_line(handler, line_str))


def run() -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
