from typing import Protocol


class DaemonTrigger(Protocol):
    """
    Protocol class for starting a daemon invocation out-of-band.
    """

    async def trigger(self) -> None:
        """
        Start a daemon invocation without waiting for it to run.
        """
        ...

    async def aclose(self) -> None:
        """
        Wait for in-flight triggers and release resources.
        """
        ...
