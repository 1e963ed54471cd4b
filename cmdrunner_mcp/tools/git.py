"""Git tool restricted to an allow-list of subcommands."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cmdrunner_mcp.tools.errors import DisallowedSubcommandError, InvalidRequestError
from cmdrunner_mcp.tools.executor import ExecutionContext, ExecutionResult, run_command
from cmdrunner_mcp.tools.security import SecurityPolicy, validate_argument

ALLOWED_GIT_SUBCOMMANDS: tuple[str, ...] = ("status", "add", "commit", "checkout")


@dataclass(frozen=True)
class GitRequest:
    """Request payload for the git tool."""

    subcommand: str
    args: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_args(cls, args: dict[str, Any]) -> GitRequest:
        subcommand = args.get("subcommand")
        if not subcommand or not isinstance(subcommand, str):
            raise InvalidRequestError("subcommand is required")
        raw_args = args.get("args") or []
        if not isinstance(raw_args, list) or not all(isinstance(a, str) for a in raw_args):
            raise InvalidRequestError("args must be a list of strings")
        return cls(subcommand=subcommand, args=tuple(raw_args))

    def validate(self, policy: SecurityPolicy | None = None) -> None:
        # Paths are left to git's own semantics; policy is unused here
        if self.subcommand not in ALLOWED_GIT_SUBCOMMANDS:
            raise DisallowedSubcommandError(self.subcommand, ALLOWED_GIT_SUBCOMMANDS)
        validate_argument(self.subcommand)
        for arg in self.args:
            validate_argument(arg)

    def build_command(self, executable: str = "git") -> list[str]:
        return [executable, self.subcommand, *self.args]


def execute(
    req: GitRequest,
    ctx: ExecutionContext,
    policy: SecurityPolicy | None = None,
    executable: str = "git",
) -> ExecutionResult:
    """Run git for a validated request."""
    return run_command(req.build_command(executable), ctx)
