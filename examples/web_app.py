"""
A web app whose requests drive the scheduler.

Start the daemon endpoint first, then the app:

    ping-scheduler serve example --dir examples --port 8081
    python examples/web_app.py

Every request to http://127.0.0.1:8080/ gives the scheduler a chance to run pending jobs.
"""
import time
from pathlib import Path

from aiohttp import web

from ping_scheduler import get_instance
from ping_scheduler.environment import find_environment, load_environment
from ping_scheduler.server import trigger_middleware

INSTANCE_ID = "example"

load_environment(find_environment(Path(__file__).parent))


async def index(request: web.Request) -> web.Response:
    jobs = await get_instance(INSTANCE_ID).manager.get_jobs()
    return web.json_response([{"id": job.id, "hook": job.hook, "due": job.readable_string} for job in jobs])


async def schedule(request: web.Request) -> web.Response:
    name = request.query.get("name", "world")
    job = await get_instance(INSTANCE_ID).schedule("say_hello", int(time.time()) + 5, [name])
    return web.json_response({"id": job.id}, status=201)


async def on_startup(app: web.Application) -> None:
    scheduler = get_instance(INSTANCE_ID)
    await scheduler.prepare()
    if not await scheduler.manager.get_jobs(hook="cleanup"):
        await scheduler.schedule("cleanup", int(time.time()), recurrence=60)


async def on_cleanup(app: web.Application) -> None:
    await get_instance(INSTANCE_ID).runner.trigger.aclose()


def create_app() -> web.Application:
    app = web.Application(middlewares=[trigger_middleware(INSTANCE_ID)])
    app.router.add_get("/", index)
    app.router.add_post("/schedule", schedule)
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


if __name__ == "__main__":
    web.run_app(create_app(), host="127.0.0.1", port=8080)
