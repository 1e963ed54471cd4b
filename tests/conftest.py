from pathlib import Path
import shutil
import subprocess
import sys

from _pytest.monkeypatch import MonkeyPatch
import pytest

pytest_plugins = [
    "tests._plugins.pytest_ruthless",
]


# Ensure repo root is importable (for `cmdrunner_mcp` and `tests._plugins`).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

CMDRUNNER_ENV_VARS = (
    "CMDRUNNER_CONFIG",
    "CMDRUNNER_ROOT",
    "CMDRUNNER_ENABLED",
    "CMDRUNNER_LOG_LEVEL",
    "CMDRUNNER_LOG_FORMAT",
    "CMDRUNNER_BLOCKED_PATHS",
    "CMDRUNNER_DEFAULT_TIMEOUT_MS",
    "CMDRUNNER_MAX_TIMEOUT_MS",
)


@pytest.fixture(scope="session", autouse=True)
def _session_env(tmp_path_factory: pytest.TempPathFactory) -> None:
    """
    Session-level hermetic env that does not depend on the function-scoped
    `monkeypatch` fixture (avoids ScopeMismatch).
    """
    home = tmp_path_factory.mktemp("home")
    mp = MonkeyPatch()
    mp.setenv("HOME", str(home))
    mp.setenv("PYTHONHASHSEED", "0")
    # Keep git from reading the developer's global/system config
    mp.setenv("GIT_CONFIG_NOSYSTEM", "1")
    try:
        yield
    finally:
        mp.undo()


@pytest.fixture(autouse=True)
def hermetic_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Autouse: each test runs in its own tmp cwd with no CMDRUNNER_* settings leaking in.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / ".cache"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / ".config"))
    for name in CMDRUNNER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture(autouse=True)
def _reset_default_policy():
    """The cached process-wide policy must not carry over between tests."""
    from cmdrunner_mcp.tools.security import default_policy

    default_policy.cache_clear()
    yield
    default_policy.cache_clear()


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Initialized git repo with an identity and one committed file."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    repo = tmp_path / "repo"
    repo.mkdir()

    def _git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True)

    _git("init", "-q", "-b", "main")
    _git("config", "user.email", "test@example.com")
    _git("config", "user.name", "Test User")
    _git("config", "commit.gpgsign", "false")
    (repo / "README.md").write_text("hello\n")
    _git("add", "README.md")
    _git("commit", "-q", "-m", "initial")
    return repo
