import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from aiohttp import web

from ping_scheduler.config import DaemonConfig
from ping_scheduler.daemon import Daemon
from ping_scheduler.scheduler import get_instance

logger = logging.getLogger(__name__)

DAEMON_PATH = "/daemon"

DAEMON_TASKS_KEY = web.AppKey("ping_scheduler_daemon_tasks", set)
DAEMON_SETTINGS_KEY = web.AppKey("ping_scheduler_daemon_settings", dict)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


async def handle_daemon(request: web.Request) -> web.Response:
    """
    Start a daemon run in the background and answer right away.

    The run is not bound to the request, so the caller hanging up does not stop it.
    """
    settings = request.app[DAEMON_SETTINGS_KEY]
    daemon = Daemon(settings["instance_id"], settings["caller_dir"], settings["config"])
    tasks: Set[asyncio.Task] = request.app[DAEMON_TASKS_KEY]
    task = asyncio.create_task(daemon.run())
    tasks.add(task)
    task.add_done_callback(tasks.discard)
    return web.json_response({"status": "accepted"}, status=202)


async def _wait_for_daemons(app: web.Application) -> None:
    tasks = app[DAEMON_TASKS_KEY]
    if tasks:
        logger.info("Waiting for %d daemon run(s) to end", len(tasks))
        await asyncio.gather(*tasks, return_exceptions=True)


def create_app(
    instance_id: str,
    caller_dir: Union[str, Path],
    config: Optional[Union[DaemonConfig, Dict[str, Any]]] = None,
    path: str = DAEMON_PATH,
) -> web.Application:
    """
    Create an aiohttp application that serves the daemon endpoint.

    Args:
        instance_id (str): The scheduler instance the daemon runs jobs for.
        caller_dir (Union[str, Path]): Directory where the environment file search starts.
        config (Optional[Union[DaemonConfig, Dict[str, Any]]]): Daemon settings.
        path (str): Route of the daemon endpoint.
    """
    app = web.Application()
    app[DAEMON_TASKS_KEY] = set()
    app[DAEMON_SETTINGS_KEY] = {
        "instance_id": instance_id,
        "caller_dir": Path(caller_dir),
        "config": config,
    }
    app.router.add_post(path, handle_daemon)
    app.on_cleanup.append(_wait_for_daemons)
    return app


def trigger_middleware(instance_id: str) -> Callable:
    """
    Middleware that gives the scheduler a chance to start the daemon on every request.
    """
    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        scheduler = get_instance(instance_id)
        if scheduler is not None:
            try:
                await scheduler.init()
            except Exception as e:
                logger.warning("Could not trigger the daemon for '%s': %s", instance_id, e)
        return await handler(request)

    return middleware
