import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, MutableMapping, Optional, Tuple, Union

LOG_FORMAT = "[%(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%d %b %y - %H:%M:%S"
INDENT = " " * 4


class DaemonLog(logging.LoggerAdapter):
    """
    Logger adapter that indents messages to reflect nested daemon phases.

    A log file attached with `to_file` belongs to this adapter only: it gets
    every message of this run at any level, and nothing from concurrent runs
    sharing the same logger.
    """

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})
        self.depth: int = 0
        self.file_handler: Optional[logging.Handler] = None

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"{INDENT * self.depth}{msg}", kwargs

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        msg, kwargs = self.process(msg, kwargs)
        if self.isEnabledFor(level):
            self.logger.log(level, msg, *args, **kwargs)
        if self.file_handler is not None and level >= self.file_handler.level:
            exc_info = kwargs.get("exc_info")
            if isinstance(exc_info, BaseException):
                exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
            elif exc_info and not isinstance(exc_info, tuple):
                exc_info = sys.exc_info()
            record = self.logger.makeRecord(self.logger.name, level, "(daemon)", 0, msg, args, exc_info or None)
            self.file_handler.handle(record)

    @contextmanager
    def section(self, title: str) -> Iterator[None]:
        """
        Log a title and indent every message logged inside the block.
        """
        self.info(title)
        self.depth += 1
        try:
            yield
        finally:
            self.depth = max(0, self.depth - 1)

    @contextmanager
    def to_file(self, path: Union[str, Path]) -> Iterator[None]:
        """
        Append every message logged through this adapter inside the block to a file.
        """
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        self.file_handler = handler
        try:
            yield
        finally:
            self.file_handler = None
            handler.close()
