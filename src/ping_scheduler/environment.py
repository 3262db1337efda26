import logging
import runpy
from pathlib import Path
from typing import Optional, Sequence, Set, Union

from ping_scheduler.config import ENVIRONMENT_FILE

logger = logging.getLogger(__name__)

# Relative layouts checked in every searched directory: the directory itself, then an app/ subdirectory
ENVIRONMENT_LAYOUTS = ("", "app")

_loaded: Set[Path] = set()


def find_environment_in_directory(
    directory: Path,
    file_name: str = ENVIRONMENT_FILE,
    layouts: Sequence[str] = ENVIRONMENT_LAYOUTS,
) -> Optional[Path]:
    for layout in layouts:
        candidate = directory / layout / file_name
        if candidate.is_file():
            return candidate.resolve()
    return None


def find_environment(
    start_dir: Union[str, Path],
    max_dir_search: int = 10,
    file_name: str = ENVIRONMENT_FILE,
    layouts: Sequence[str] = ENVIRONMENT_LAYOUTS,
) -> Optional[Path]:
    """
    Search for the environment entry file, starting in `start_dir` and moving up.

    Args:
        start_dir (Union[str, Path]): The first directory to search in.
        max_dir_search (int): Maximum number of directories to search.
        file_name (str): Name of the entry file.
        layouts (Sequence[str]): Subdirectories checked, in order, in every searched directory.

    Returns:
        Optional[Path]: The resolved path of the entry file, or None if it was not found.
    """
    directory = Path(start_dir).resolve()
    for _ in range(max_dir_search):
        logger.debug("Searching for %s in '%s'", file_name, directory)
        found = find_environment_in_directory(directory, file_name, layouts)
        if found is not None:
            return found
        if directory.parent == directory:
            break
        directory = directory.parent
    return None


def load_environment(path: Union[str, Path]) -> bool:
    """
    Execute an environment entry file, once per process.

    Returns:
        bool: False if the file had already been loaded.
    """
    path = Path(path).resolve()
    if path in _loaded:
        return False
    runpy.run_path(str(path), run_name="__ping_scheduler_env__")
    _loaded.add(path)
    return True
