import asyncio
import threading

import pytest

from ping_scheduler.errors import HookNotFoundError
from ping_scheduler.hooks import HookRegistry


@pytest.fixture
def registry() -> HookRegistry:
    return HookRegistry()


@pytest.mark.asyncio
async def test_invoke_sync_and_async_handlers_in_order(registry: HookRegistry):
    calls = []

    def sync_handler(a, b):
        calls.append(("sync", a, b))

    async def async_handler(a, b):
        calls.append(("async", a, b))

    registry.register("greet", sync_handler)
    registry.register("greet", async_handler)

    await registry.invoke("greet", ["hello", 2])

    assert calls == [("sync", "hello", 2), ("async", "hello", 2)]


@pytest.mark.asyncio
async def test_decorator(registry: HookRegistry):
    calls = []

    @registry.hook("cleanup")
    async def cleanup():
        calls.append("cleanup")

    assert registry.has_hook("cleanup")
    await registry.invoke("cleanup", [])
    assert calls == ["cleanup"]


@pytest.mark.asyncio
async def test_invoke_unknown_hook(registry: HookRegistry):
    with pytest.raises(HookNotFoundError, match="No handler registered for hook 'missing'"):
        await registry.invoke("missing", [])

    with pytest.raises(KeyError):
        await registry.invoke("missing", [])


@pytest.mark.asyncio
async def test_handler_errors_propagate(registry: HookRegistry):
    def broken():
        raise RuntimeError("boom")

    registry.register("broken", broken)
    with pytest.raises(RuntimeError, match="boom"):
        await registry.invoke("broken", [])


def test_register_duplicate(registry: HookRegistry):
    def handler():
        pass

    registry.register("hook", handler)
    with pytest.raises(ValueError, match="already registered"):
        registry.register("hook", handler)


def test_unregister(registry: HookRegistry):
    def handler():
        pass

    registry.register("hook", handler)
    assert registry.unregister("hook", handler) is True
    assert registry.unregister("hook", handler) is False
    assert not registry.has_hook("hook")


@pytest.mark.asyncio
async def test_sync_handlers_run_off_the_event_loop(registry: HookRegistry):
    threads = []

    def sync_handler():
        threads.append(threading.get_ident())

    async def async_handler():
        threads.append(threading.get_ident())

    registry.register("where", sync_handler)
    registry.register("where", async_handler)

    await registry.invoke("where", [])

    assert threads[1] == threading.get_ident()
    assert threads[0] != threading.get_ident()


@pytest.mark.asyncio
async def test_slow_sync_handler_can_be_timed_out(registry: HookRegistry):
    release = threading.Event()
    registry.register("slow", lambda: release.wait(5))

    try:
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(registry.invoke("slow", []), timeout=0.1)
    finally:
        release.set()
