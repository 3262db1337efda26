import asyncio
import time

import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from ping_scheduler.config import ENVIRONMENT_FILE, SchedulerConfig
from ping_scheduler.domain.runner import RunnerState
from ping_scheduler.hooks import HookRegistry
from ping_scheduler.scheduler import Scheduler, unregister_instance
from ping_scheduler.server import DAEMON_TASKS_KEY, create_app, trigger_middleware

INSTANCE_ID = "server-test"


@pytest.fixture
def hooks() -> HookRegistry:
    return HookRegistry()


@pytest_asyncio.fixture
async def scheduler(trigger, hooks):
    instance = Scheduler.setup(
        INSTANCE_ID,
        config=SchedulerConfig(retain_failed_jobs=False),
        dispatcher=hooks,
        trigger=trigger,
    )
    await instance.prepare()
    yield instance
    unregister_instance(INSTANCE_ID)


@pytest.mark.asyncio
async def test_daemon_endpoint_runs_pending_jobs(scheduler: Scheduler, hooks, tmp_path):
    (tmp_path / ENVIRONMENT_FILE).write_text("")
    calls = []
    hooks.register("tick", lambda: calls.append("tick"))
    await scheduler.schedule("tick", int(time.time()) - 60)
    await scheduler.runner.set_state(RunnerState.QUEUED)

    app = create_app(INSTANCE_ID, tmp_path)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        response = await client.post("/daemon")
        assert response.status == 202
        assert await response.json() == {"status": "accepted"}

        await asyncio.gather(*list(app[DAEMON_TASKS_KEY]))

    assert calls == ["tick"]
    assert await scheduler.manager.get_jobs() == []
    assert await scheduler.runner.get_state() == RunnerState.STOPPED


@pytest.mark.asyncio
async def test_daemon_endpoint_only_accepts_post(tmp_path):
    app = create_app(INSTANCE_ID, tmp_path, path="/cron")
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        response = await client.get("/cron")
        assert response.status == 405


@pytest.mark.asyncio
async def test_trigger_middleware(scheduler: Scheduler, trigger):
    async def index(request: web.Request) -> web.Response:
        return web.Response(text="ok")

    app = web.Application(middlewares=[trigger_middleware(INSTANCE_ID)])
    app.router.add_get("/", index)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        for _ in range(3):
            response = await client.get("/")
            assert response.status == 200
            assert await response.text() == "ok"

    assert trigger.count == 1
    assert await scheduler.runner.get_state() == RunnerState.QUEUED


@pytest.mark.asyncio
async def test_trigger_middleware_without_instance():
    async def index(request: web.Request) -> web.Response:
        return web.Response(text="ok")

    app = web.Application(middlewares=[trigger_middleware("not-registered")])
    app.router.add_get("/", index)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        response = await client.get("/")
        assert response.status == 200
