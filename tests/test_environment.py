from ping_scheduler.config import ENVIRONMENT_FILE
from ping_scheduler.environment import find_environment, load_environment


def test_find_environment_in_start_directory(tmp_path):
    env_file = tmp_path / ENVIRONMENT_FILE
    env_file.write_text("")

    assert find_environment(tmp_path) == env_file.resolve()


def test_find_environment_walks_up(tmp_path):
    env_file = tmp_path / ENVIRONMENT_FILE
    env_file.write_text("")
    nested = tmp_path / "a" / "b" / "c"
    nested.mkdir(parents=True)

    assert find_environment(nested) == env_file.resolve()


def test_find_environment_in_app_layout(tmp_path):
    (tmp_path / "app").mkdir()
    env_file = tmp_path / "app" / ENVIRONMENT_FILE
    env_file.write_text("")
    nested = tmp_path / "public"
    nested.mkdir()

    assert find_environment(nested) == env_file.resolve()


def test_direct_layout_wins_over_app_layout(tmp_path):
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / ENVIRONMENT_FILE).write_text("")
    env_file = tmp_path / ENVIRONMENT_FILE
    env_file.write_text("")

    assert find_environment(tmp_path) == env_file.resolve()


def test_find_environment_is_bounded(tmp_path):
    (tmp_path / ENVIRONMENT_FILE).write_text("")
    nested = tmp_path / "a" / "b" / "c"
    nested.mkdir(parents=True)

    assert find_environment(nested, max_dir_search=3) is None
    assert find_environment(nested, max_dir_search=4) is not None


def test_find_environment_with_custom_file_name(tmp_path):
    env_file = tmp_path / "bootstrap.py"
    env_file.write_text("")

    assert find_environment(tmp_path, file_name="bootstrap.py") == env_file.resolve()


def test_load_environment_once(tmp_path):
    marker = tmp_path / "marker.txt"
    env_file = tmp_path / ENVIRONMENT_FILE
    env_file.write_text(
        "from pathlib import Path\n"
        f"marker = Path({str(marker)!r})\n"
        "marker.write_text(marker.read_text() + 'x' if marker.exists() else 'x')\n"
    )

    assert load_environment(env_file) is True
    assert load_environment(env_file) is False
    assert marker.read_text() == "x"
