"""Command-line launcher for the Booper server."""

from __future__ import annotations

import argparse
import logging
import threading
import time
import webbrowser
from dataclasses import replace

from urllib import error, request

import uvicorn

from booper.backend.api import create_app
from booper.backend.config import BackendSettings, load_settings


def parse_args(defaults: BackendSettings, argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Booper presence server")
    parser.add_argument("--host", default=defaults.host)
    parser.add_argument("--port", type=int, default=defaults.port)
    parser.add_argument("--log-level", default=defaults.log_level)
    parser.add_argument("--open-browser", action="store_true")
    return parser.parse_args(argv)


def wait_for_server(server_url: str, timeout_s: float = 8.0) -> bool:
    start = time.time()
    while time.time() - start < timeout_s:
        try:
            with request.urlopen(f"{server_url}/api/state", timeout=0.5) as response:
                if int(response.status) < 500:
                    return True
        except (error.URLError, TimeoutError):
            pass
        time.sleep(0.2)
    return False


def open_when_ready(server_url: str) -> None:
    if wait_for_server(server_url):
        webbrowser.open(f"{server_url}/docs")
    else:
        logging.getLogger(__name__).warning("Server at %s did not come up, not opening a browser", server_url)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    defaults = load_settings()
    args = parse_args(defaults, argv)
    settings = replace(defaults, host=args.host, port=args.port, log_level=args.log_level.upper())
    configure_logging(settings.log_level)

    if args.open_browser:
        threading.Thread(
            target=open_when_ready,
            args=(f"http://{settings.host}:{settings.port}",),
            daemon=True,
        ).start()

    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        ws_max_size=settings.max_message_bytes,
        ws_ping_interval=settings.ping_interval,
        ws_ping_timeout=settings.read_timeout - settings.ping_interval,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
