"""Tests for the ls tool adapter, including real `ls -al` runs."""

from pathlib import Path
import shutil

import pytest

from cmdrunner_mcp.tools.errors import (
    BlockedPathError,
    FlagInjectionError,
    PathTraversalError,
    ShellInjectionError,
)
from cmdrunner_mcp.tools.executor import ExecutionContext, ResultKind
from cmdrunner_mcp.tools.ls import LsRequest, execute
from cmdrunner_mcp.tools.request import run_tool
from cmdrunner_mcp.tools.security import SecurityPolicy

pytestmark = [
    pytest.mark.allow_sleep,
    pytest.mark.skipif(shutil.which("ls") is None, reason="ls not available"),
]


@pytest.fixture
def populated(tmp_path: Path) -> Path:
    d = tmp_path / "listing"
    d.mkdir()
    for name in ("alpha.txt", "beta.txt", "gamma.rs", ".hidden"):
        (d / name).write_text(name)
    return d


class TestLsRequest:
    def test_default_path(self):
        assert LsRequest.from_args({}).path == "."

    def test_build_command(self):
        assert LsRequest("/srv").build_command() == ["ls", "-al", "/srv"]
        assert LsRequest("x").build_command("/bin/ls") == ["/bin/ls", "-al", "x"]

    def test_validation_order(self):
        policy = SecurityPolicy(("/blocked",))
        with pytest.raises(ShellInjectionError):
            LsRequest("-x;y").validate(policy)
        with pytest.raises(FlagInjectionError):
            LsRequest("-x/..").validate(policy)
        with pytest.raises(PathTraversalError):
            LsRequest("/blocked/..").validate(policy)
        with pytest.raises(BlockedPathError):
            LsRequest("/blocked/x").validate(policy)

    def test_safe_path_passes(self):
        LsRequest("/srv/data").validate(SecurityPolicy(("/blocked",)))


class TestLsExecution:
    def test_lists_directory(self, populated: Path):
        out = run_tool("ls_tool", {"path": str(populated)}, SecurityPolicy())
        assert "alpha.txt" in out
        assert ".hidden" in out
        assert not out.startswith("Error:")

    def test_default_path_lists_cwd(self, tmp_path: Path):
        (tmp_path / "in_cwd.txt").write_text("x")
        out = run_tool("ls_tool", {}, SecurityPolicy())
        assert "in_cwd.txt" in out

    def test_grep_and_sort(self, populated: Path):
        out = run_tool(
            "ls_tool",
            {"path": str(populated), "grep_pattern": r"\.txt$", "sort": True},
            SecurityPolicy(),
        )
        lines = out.split("\n")
        assert len(lines) == 2
        assert lines == sorted(lines)
        assert {line.rsplit(" ", 1)[-1] for line in lines} == {"alpha.txt", "beta.txt"}

    def test_invert_grep(self, populated: Path):
        out = run_tool(
            "ls_tool",
            {"path": str(populated), "grep_pattern": "txt", "invert_grep": True},
            SecurityPolicy(),
        )
        assert "alpha.txt" not in out
        assert "gamma.rs" in out

    def test_missing_path_is_error(self, tmp_path: Path):
        out = run_tool("ls_tool", {"path": str(tmp_path / "missing")}, SecurityPolicy())
        assert out.startswith("Error: ")

    def test_relative_path_with_working_dir(self, populated: Path):
        out = run_tool(
            "ls_tool", {"path": ".", "working_dir": str(populated)}, SecurityPolicy()
        )
        assert "gamma.rs" in out

    def test_working_dir_combination_reaching_blocked_dir(self, tmp_path: Path):
        other = tmp_path / "other"
        secret = other / "secret"
        secret.mkdir(parents=True)
        policy = SecurityPolicy((str(secret.resolve()),))

        # Bare "secret" resolves against the cwd and looks safe; joined with
        # working_dir it lands inside the blocked directory.
        out = run_tool("ls_tool", {"path": "secret", "working_dir": str(other)}, policy)
        assert out == f"Error: Reading path '{secret.resolve()}' is not allowed"

    def test_execute_rechecks_working_dir(self, tmp_path: Path):
        blocked = tmp_path / "vault"
        blocked.mkdir()
        policy = SecurityPolicy((str(blocked.resolve()),))
        result = execute(
            LsRequest("."), ExecutionContext(timeout=10, working_dir=str(blocked)), policy
        )
        assert result.kind is ResultKind.ERROR
        assert "is not allowed" in result.text

    def test_execute_without_working_dir(self, populated: Path):
        result = execute(LsRequest(str(populated)), ExecutionContext(timeout=10))
        assert result.ok
        assert "beta.txt" in result.text

    def test_missing_executable(self, populated: Path):
        result = execute(
            LsRequest(str(populated)),
            ExecutionContext(timeout=10),
            executable="cmdrunner-no-such-ls",
        )
        assert result.kind is ResultKind.ERROR
        assert result.text.startswith("Error: Failed to spawn command:")
