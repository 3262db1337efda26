import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from aiohttp import web

from ping_scheduler.config import DaemonConfig
from ping_scheduler.daemon import Daemon, DaemonResult
from ping_scheduler.server import DAEMON_PATH, create_app

CONFIG_ENV_VAR = "PING_SCHEDULER_CONFIG"


def load_daemon_config(path: Optional[str]) -> DaemonConfig:
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return DaemonConfig()
    return DaemonConfig.load(path)


async def run_once(daemon: Daemon) -> DaemonResult:
    """
    Run a single daemon invocation. Termination signals cancel the run so that the runner gets reset.
    """
    task = asyncio.create_task(daemon.run())
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGHUP):
        try:
            loop.add_signal_handler(sig, task.cancel)
        except (NotImplementedError, AttributeError, RuntimeError):
            # Signal handlers are unavailable on this platform
            pass
    try:
        return await task
    except asyncio.CancelledError:
        if not task.cancelled():
            raise
        return DaemonResult.CRASHED
    finally:
        if daemon.scheduler is not None:
            await daemon.scheduler.runner.trigger.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ping-scheduler", description="Pseudo-cron daemon for ping_scheduler instances")
    parser.add_argument("--config", help=f"Path to a daemon config JSON file (defaults to ${CONFIG_ENV_VAR})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug messages to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the daemon once")
    run_parser.add_argument("instance_id", help="ID of the scheduler instance")
    run_parser.add_argument("--dir", default=os.getcwd(), help="Directory where the environment search starts")

    serve_parser = subparsers.add_parser("serve", help="Serve the daemon endpoint over HTTP")
    serve_parser.add_argument("instance_id", help="ID of the scheduler instance")
    serve_parser.add_argument("--dir", default=os.getcwd(), help="Directory where the environment search starts")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8080)
    serve_parser.add_argument("--path", default=DAEMON_PATH, help="Route of the daemon endpoint")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    config = load_daemon_config(args.config)

    if args.command == "run":
        daemon = Daemon(args.instance_id, Path(args.dir), config)
        result = asyncio.run(run_once(daemon))
        return 0 if result != DaemonResult.CRASHED else 1

    app = create_app(args.instance_id, Path(args.dir), config, path=args.path)
    web.run_app(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
