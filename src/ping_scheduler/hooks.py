import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Protocol, Sequence, Union

from ping_scheduler.errors import HookNotFoundError

HookHandler = Callable[..., Union[None, Awaitable[None]]]


class HookDispatcher(Protocol):
    """
    Protocol for running the payload of a job.
    """

    async def invoke(self, hook: str, args: Sequence[Any]) -> None:
        """
        Run the handlers of a hook with the given positional arguments.

        Args:
            hook (str): The name of the hook.
            args (Sequence[Any]): Positional arguments for the handlers.

        Raises:
            Exception: Any error raised by a handler is propagated unchanged.
        """
        ...


class HookRegistry:
    """
    In-process hook dispatcher. Handlers may be plain or async callables.
    """
    def __init__(self):
        self._handlers: Dict[str, List[HookHandler]] = {}

    def register(self, hook: str, handler: HookHandler) -> None:
        """
        Register a handler for a hook. Handlers of a hook run in registration order.

        Args:
            hook (str): The name of the hook.
            handler (HookHandler): The callable to run when the hook is invoked.
        """
        handlers = self._handlers.setdefault(hook, [])
        if handler in handlers:
            raise ValueError(f"Handler {handler!r} is already registered for hook '{hook}'")
        handlers.append(handler)

    def hook(self, hook: str) -> Callable[[HookHandler], HookHandler]:
        def decorator(handler: HookHandler) -> HookHandler:
            self.register(hook, handler)
            return handler
        return decorator

    def unregister(self, hook: str, handler: HookHandler) -> bool:
        handlers = self._handlers.get(hook, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[hook]
        return True

    def has_hook(self, hook: str) -> bool:
        return bool(self._handlers.get(hook))

    async def invoke(self, hook: str, args: Sequence[Any]) -> None:
        """
        Run the handlers of a hook in registration order.

        Plain callables run in a worker thread so that they never block the
        event loop and stay subject to the caller's timeouts.
        """
        handlers = self._handlers.get(hook)
        if not handlers:
            raise HookNotFoundError(hook)
        for handler in list(handlers):
            if inspect.iscoroutinefunction(handler):
                await handler(*args)
                continue
            result = await asyncio.to_thread(handler, *args)
            if inspect.isawaitable(result):
                await result
