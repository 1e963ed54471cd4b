"""
Tool request parsing and the validate → execute → transform flow.

A ToolRequest wraps one tool payload (LsRequest or GitRequest) together with the
fields every tool accepts: output transformations, timeout, working directory and
environment overrides.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import logging
from typing import Any, Union

from cmdrunner_mcp.config import McpToolsConfig
from cmdrunner_mcp.tools import git, ls
from cmdrunner_mcp.tools.errors import InvalidRequestError, ValidationError
from cmdrunner_mcp.tools.executor import MAX_TIMEOUT_SECONDS, ExecutionContext, ExecutionResult
from cmdrunner_mcp.tools.security import (
    SecurityPolicy,
    validate_absolute_path,
    validate_env_var,
    validate_no_traversal,
    validate_path,
)
from cmdrunner_mcp.tools.transform import (
    DEFAULT_TRANSFORM_ORDER,
    Transformation,
    TransformOptions,
    apply_transforms,
    parse_order,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 180_000
MAX_TIMEOUT_MS = int(MAX_TIMEOUT_SECONDS * 1000)

ToolPayload = Union[ls.LsRequest, git.GitRequest]


@dataclass(frozen=True)
class ToolAdapter:
    """Binds a tool name to its payload type and executor."""

    name: str
    payload: type
    execute: Callable[..., ExecutionResult]
    executable: Callable[[McpToolsConfig], str]


TOOL_ADAPTERS: dict[str, ToolAdapter] = {
    "ls_tool": ToolAdapter(
        name="ls_tool",
        payload=ls.LsRequest,
        execute=ls.execute,
        executable=lambda cfg: cfg.ls_executable,
    ),
    "git": ToolAdapter(
        name="git",
        payload=git.GitRequest,
        execute=git.execute,
        executable=lambda cfg: cfg.git_executable,
    ),
}


def _opt_str(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequestError(f"{key} must be a string")
    return value


def _opt_bool(args: dict[str, Any], key: str) -> bool:
    value = args.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidRequestError(f"{key} must be a boolean")
    return value


def _opt_count(args: dict[str, Any], key: str) -> int | None:
    value = args.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidRequestError(f"{key} must be a non-negative integer")
    return value


def _opt_env(args: dict[str, Any]) -> dict[str, str] | None:
    value = args.get("env")
    if value is None:
        return None
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise InvalidRequestError("env must be an object mapping strings to strings")
    return dict(value)


def _opt_order(args: dict[str, Any]) -> tuple[Transformation, ...] | None:
    value = args.get("transform_order")
    if value is None:
        return None
    if not isinstance(value, list):
        raise InvalidRequestError("transform_order must be a list of stage names")
    try:
        return parse_order(value)
    except ValueError as e:
        raise InvalidRequestError(str(e)) from None


@dataclass(frozen=True)
class ToolRequest:
    """A tool payload plus the options shared by every tool."""

    tool: str
    payload: ToolPayload
    grep_pattern: str | None = None
    invert_grep: bool = False
    head: int | None = None
    tail: int | None = None
    sort: bool = False
    unique: bool = False
    timeout_ms: int | None = None
    working_dir: str | None = None
    env: dict[str, str] | None = None
    transform_order: tuple[Transformation, ...] | None = field(default=None)

    @classmethod
    def from_args(cls, tool: str, args: dict[str, Any] | None) -> ToolRequest:
        """
        Parse raw tool arguments.

        Raises:
            InvalidRequestError: Unknown tool or malformed field
        """
        adapter = TOOL_ADAPTERS.get(tool)
        if adapter is None:
            raise InvalidRequestError(f"Unknown tool: {tool}")
        args = args or {}
        if not isinstance(args, dict):
            raise InvalidRequestError("arguments must be an object")

        return cls(
            tool=tool,
            payload=adapter.payload.from_args(args),
            grep_pattern=_opt_str(args, "grep_pattern"),
            invert_grep=_opt_bool(args, "invert_grep"),
            head=_opt_count(args, "head"),
            tail=_opt_count(args, "tail"),
            sort=_opt_bool(args, "sort"),
            unique=_opt_bool(args, "unique"),
            timeout_ms=_opt_count(args, "timeout_ms"),
            working_dir=_opt_str(args, "working_dir"),
            env=_opt_env(args),
            transform_order=_opt_order(args),
        )

    def validate(self, policy: SecurityPolicy | None = None) -> None:
        """Run the payload's rules, then the shared working_dir/env rules."""
        self.payload.validate(policy)
        if self.working_dir is not None:
            validate_absolute_path(self.working_dir)
            validate_no_traversal(self.working_dir)
            validate_path(self.working_dir, policy)
        if self.env:
            for name, value in self.env.items():
                validate_env_var(name, value)

    def execution_context(
        self,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_timeout_ms: int = 0,
    ) -> ExecutionContext:
        timeout_ms = self.timeout_ms if self.timeout_ms is not None else default_timeout_ms
        if max_timeout_ms > 0:
            timeout_ms = min(timeout_ms, max_timeout_ms)
        timeout_ms = min(timeout_ms, MAX_TIMEOUT_MS)
        return ExecutionContext(
            timeout=timeout_ms / 1000.0,
            working_dir=self.working_dir,
            env=dict(self.env) if self.env else None,
        )

    def transform_options(self) -> TransformOptions:
        return TransformOptions(
            grep_pattern=self.grep_pattern,
            invert_grep=self.invert_grep,
            sort=self.sort,
            unique=self.unique,
            head=self.head,
            tail=self.tail,
            order=self.transform_order
            if self.transform_order is not None
            else DEFAULT_TRANSFORM_ORDER,
        )


def run_request(
    req: ToolRequest,
    policy: SecurityPolicy | None = None,
    tools_config: McpToolsConfig | None = None,
) -> str:
    """Validate, execute and transform a parsed request. Always returns text."""
    cfg = tools_config or McpToolsConfig()
    adapter = TOOL_ADAPTERS[req.tool]

    try:
        req.validate(policy)
    except ValidationError as e:
        logger.warning(f"{req.tool} rejected ({e.code}): {e}")
        return f"Error: {e}"

    ctx = req.execution_context(cfg.default_timeout_ms, cfg.max_timeout_ms)
    result = adapter.execute(req.payload, ctx, policy, adapter.executable(cfg))
    if not result.ok:
        return result.to_text()

    transformed = apply_transforms(result.text, req.transform_options())
    if not transformed.success:
        return f"Error: {transformed.error}"
    return transformed.text


def run_tool(
    tool: str,
    args: dict[str, Any] | None,
    policy: SecurityPolicy | None = None,
    tools_config: McpToolsConfig | None = None,
) -> str:
    """Parse raw arguments for `tool` and run the full flow."""
    try:
        req = ToolRequest.from_args(tool, args)
    except InvalidRequestError as e:
        logger.warning(f"{tool} invalid request: {e}")
        return f"Error: Invalid request: {e}"
    return run_request(req, policy, tools_config)
