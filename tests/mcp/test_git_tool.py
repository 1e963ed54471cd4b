"""Tests for the git tool adapter against a throwaway repository."""

from pathlib import Path

import pytest

from cmdrunner_mcp.tools.errors import DisallowedSubcommandError, ShellInjectionError
from cmdrunner_mcp.tools.git import ALLOWED_GIT_SUBCOMMANDS, GitRequest
from cmdrunner_mcp.tools.request import run_tool
from cmdrunner_mcp.tools.security import SecurityPolicy

POLICY = SecurityPolicy()


class TestGitRequest:
    def test_allow_list(self):
        assert ALLOWED_GIT_SUBCOMMANDS == ("status", "add", "commit", "checkout")

    def test_from_args_defaults(self):
        req = GitRequest.from_args({"subcommand": "status"})
        assert req.args == ()

    def test_build_command(self):
        req = GitRequest("commit", ("-m", "msg"))
        assert req.build_command() == ["git", "commit", "-m", "msg"]

    def test_disallowed_checked_first(self):
        with pytest.raises(DisallowedSubcommandError) as exc:
            GitRequest("push", ("$(id)",)).validate()
        assert exc.value.allowed == ALLOWED_GIT_SUBCOMMANDS

    def test_args_are_checked(self):
        with pytest.raises(ShellInjectionError):
            GitRequest("add", ("a", "b;c")).validate()

    def test_flags_allowed_in_args(self):
        GitRequest("status", ("--short", "-b")).validate()


@pytest.mark.requires_git
@pytest.mark.allow_sleep
class TestGitExecution:
    def _git(self, repo: Path, subcommand: str, *args: str, **extra) -> str:
        payload = {"subcommand": subcommand, "args": list(args), "working_dir": str(repo)}
        payload.update(extra)
        return run_tool("git", payload, POLICY)

    def test_status_clean(self, git_repo: Path):
        out = self._git(git_repo, "status")
        assert "On branch main" in out
        assert "nothing to commit" in out

    def test_status_head(self, git_repo: Path):
        out = self._git(git_repo, "status", head=1)
        assert out == "On branch main"

    def test_status_short_with_grep(self, git_repo: Path):
        (git_repo / "new.txt").write_text("new\n")
        (git_repo / "other.md").write_text("other\n")
        out = self._git(git_repo, "status", "--short", grep_pattern=r"\.txt$")
        assert out == "?? new.txt"

    def test_add_and_commit(self, git_repo: Path):
        (git_repo / "new.txt").write_text("new\n")
        assert not self._git(git_repo, "add", "new.txt").startswith("Error:")

        out = self._git(git_repo, "commit", "-m", "add new file")
        assert "add new file" in out
        assert not out.startswith("Error:")

        assert "nothing to commit" in self._git(git_repo, "status")

    def test_checkout_new_branch(self, git_repo: Path):
        out = self._git(git_repo, "checkout", "-b", "feature")
        assert not out.startswith("Error:")
        assert "On branch feature" in self._git(git_repo, "status")

    def test_checkout_unknown_ref_is_error(self, git_repo: Path):
        out = self._git(git_repo, "checkout", "does-not-exist")
        assert out.startswith("Error: ")

    def test_commit_with_nothing_staged_is_error(self, git_repo: Path):
        out = self._git(git_repo, "commit", "-m", "empty")
        # git reports this on stdout with exit 1
        assert out.startswith("Error: ")
        assert "nothing to commit" in out

    def test_env_override_reaches_git(self, git_repo: Path):
        (git_repo / "authored.txt").write_text("x\n")
        self._git(git_repo, "add", "authored.txt")
        out = self._git(
            git_repo,
            "commit",
            "-m",
            "by bot",
            env={"GIT_AUTHOR_NAME": "Robot Author", "GIT_AUTHOR_EMAIL": "robot@example.com"},
        )
        assert not out.startswith("Error:")
        log = (git_repo / ".git" / "logs" / "HEAD").read_text()
        assert "by bot" in log

    def test_outside_repository(self, tmp_path: Path):
        plain = tmp_path / "plain"
        plain.mkdir()
        out = self._git(
            plain, "status", env={"GIT_CEILING_DIRECTORIES": str(tmp_path)}
        )
        assert out.startswith("Error: ")
        assert "not a git repository" in out

    def test_disallowed_subcommand_never_runs(self, git_repo: Path):
        out = self._git(git_repo, "log")
        assert out == (
            "Error: Subcommand 'log' is not allowed. "
            "Allowed subcommands: status, add, commit, checkout"
        )
