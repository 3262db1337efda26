from pathlib import Path

from ping_scheduler import HookRegistry, Scheduler, SchedulerConfig

INSTANCE_ID = "example"
DB_PATH = Path(__file__).parent / "example.db"

hooks = HookRegistry()


@hooks.hook("say_hello")
def say_hello(name: str) -> None:
    print(f"Hello, {name}!")


@hooks.hook("cleanup")
async def cleanup() -> None:
    print("Cleaning up ...")


# The web app and the daemon process both load this file
Scheduler.setup(
    INSTANCE_ID,
    daemon_url="http://127.0.0.1:8081/daemon",
    db_url=f"sqlite+aiosqlite:///{DB_PATH}",
    config=SchedulerConfig(run_interval=10, retain_failed_jobs=False),
    dispatcher=hooks,
)
