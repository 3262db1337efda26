import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO, Any, Iterator, Optional

_doing_daemon_run: ContextVar[bool] = ContextVar("ping_scheduler_doing_daemon_run", default=False)
_captured_output: ContextVar[Optional[IO[str]]] = ContextVar("ping_scheduler_captured_output", default=None)


def in_daemon_context() -> bool:
    """
    Whether the current code runs inside a daemon invocation.
    """
    return _doing_daemon_run.get()


@contextmanager
def daemon_context() -> Iterator[None]:
    token = _doing_daemon_run.set(True)
    try:
        yield
    finally:
        _doing_daemon_run.reset(token)


class ContextStdout:
    """
    Stands in for `sys.stdout` and sends writes to the buffer captured by the
    current context, or to the wrapped stream when nothing is captured.

    Installed once, so concurrent daemon runs never swap `sys.stdout` back and forth.
    """

    def __init__(self, stream: IO[str]):
        self.stream: IO[str] = stream

    def _target(self) -> IO[str]:
        buffer = _captured_output.get()
        return self.stream if buffer is None else buffer

    def write(self, text: str) -> int:
        return self._target().write(text)

    def flush(self) -> None:
        self._target().flush()

    def __getattr__(self, name: str) -> Any:
        return getattr(self.stream, name)


@contextmanager
def capture_output(buffer: IO[str]) -> Iterator[IO[str]]:
    """
    Collect everything printed by the current context, including worker
    threads started from it, into `buffer`.
    """
    if not isinstance(sys.stdout, ContextStdout):
        sys.stdout = ContextStdout(sys.stdout)
    token = _captured_output.set(buffer)
    try:
        yield buffer
    finally:
        _captured_output.reset(token)
