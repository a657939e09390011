"""
Llama sidecar entry point.

Communicates with the desktop host via NDJSON over stdin/stdout.
stderr is used exclusively for logging (not protocol traffic).
"""
from __future__ import annotations

import argparse
import asyncio
import logging

from llama_sidecar import __version__
from llama_sidecar.configs.settings import SidecarConfig
from llama_sidecar.diagnostics import configure_logging, install_exception_hooks
from llama_sidecar.ipc.handler import RequestHandler
from llama_sidecar.ipc.ndjson_transport import NdjsonTransport
from llama_sidecar.llama.service import LlamaService

logger = logging.getLogger(__name__)


async def main(config: SidecarConfig):
    logger.info("Llama sidecar starting (version %s)", __version__)
    install_exception_hooks(config.log_dir, asyncio.get_running_loop())

    service = LlamaService(config)
    handler = RequestHandler(service)
    transport = NdjsonTransport()
    tasks: set[asyncio.Task] = set()

    try:
        async for request in transport.read_requests():
            # Each request is handled concurrently
            task = asyncio.create_task(_handle_request(handler, transport, request))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
    finally:
        stopped = service.stop_all_processes()
        logger.info("Host closed the pipe, stopped %d model processes", stopped)


async def _handle_request(
    handler: RequestHandler,
    transport: NdjsonTransport,
    request: dict,
):
    request_id = request.get("id", "unknown")
    method = request.get("method", "")
    params = request.get("params", {})

    logger.info("Handling request %s: %s", request_id, method)

    try:
        result = await handler.dispatch(
            method=method,
            params=params,
            emit=lambda event, data: asyncio.ensure_future(
                transport.send_event(request_id, event, data)
            ),
        )
        await transport.send_response(request_id, result=result)
    except Exception as e:
        logger.exception("Error handling %s: %s", method, e)
        await transport.send_error(
            request_id,
            code=type(e).__name__,
            message=str(e),
        )


def run(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="llama-sidecar")
    parser.add_argument("--config", help="YAML configuration file")
    args = parser.parse_args(argv)

    config = SidecarConfig.load(args.config)
    configure_logging(config)
    asyncio.run(main(config))


if __name__ == "__main__":
    run()
