"""Directory listing tool (`ls -al <path>`)."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from cmdrunner_mcp.tools.errors import InvalidRequestError, ValidationError
from cmdrunner_mcp.tools.executor import ExecutionContext, ExecutionResult, run_command
from cmdrunner_mcp.tools.security import (
    SecurityPolicy,
    validate_argument,
    validate_no_traversal,
    validate_not_flag,
    validate_path,
    validate_path_with_working_dir,
)

logger = logging.getLogger(__name__)

DEFAULT_PATH = "."


@dataclass(frozen=True)
class LsRequest:
    """Request payload for the ls tool."""

    path: str = DEFAULT_PATH

    @classmethod
    def from_args(cls, args: dict[str, Any]) -> LsRequest:
        path = args.get("path")
        if path is None:
            return cls()
        if not isinstance(path, str):
            raise InvalidRequestError("path must be a string")
        return cls(path=path)

    def validate(self, policy: SecurityPolicy | None = None) -> None:
        validate_argument(self.path)
        validate_not_flag(self.path)
        # Any ".." is refused outright, wherever it would resolve to
        validate_no_traversal(self.path)
        validate_path(self.path, policy)

    def build_command(self, executable: str = "ls") -> list[str]:
        return [executable, "-al", self.path]


def execute(
    req: LsRequest,
    ctx: ExecutionContext,
    policy: SecurityPolicy | None = None,
    executable: str = "ls",
) -> ExecutionResult:
    """Run ls for a validated request."""
    if ctx.working_dir is not None:
        try:
            validate_path_with_working_dir(req.path, ctx.working_dir, policy)
        except ValidationError as e:
            logger.warning(f"ls rejected at execution time: {e}")
            return ExecutionResult.error(f"Error: {e}")

    return run_command(req.build_command(executable), ctx)
