"""
Request validation for cmdrunner tools.

Security features:
- Shell metacharacter blacklist (commands never run through a shell, but a
  misbehaving parser downstream should never see them either)
- Flag injection rejection for positional arguments
- '..' traversal rejection before any filesystem resolution
- Administratively blocked path prefixes (symlinks resolved)
- Dangerous environment variable names

All checks are pure: they raise on the first violated rule and never spawn a process.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import lru_cache
import logging
import os
from pathlib import Path

from cmdrunner_mcp.tools.errors import (
    BlockedPathError,
    DangerousEnvVarError,
    FlagInjectionError,
    PathTraversalError,
    RelativeWorkingDirError,
    ShellInjectionError,
)

logger = logging.getLogger(__name__)

BLOCKED_PATHS_ENV = "CMDRUNNER_BLOCKED_PATHS"

SHELL_INJECTION_CHARS = frozenset(";|&$`(){}[]<>'\"\\*?!#\n\r\x00")

# Sentinels for stdin and end-of-options
FLAG_SENTINELS = ("-", "--")

# Entries ending in "_" match as prefixes
DANGEROUS_ENV_VARS = (
    "LD_PRELOAD",
    "LD_LIBRARY_PATH",
    "DYLD_INSERT_LIBRARIES",
    "DYLD_LIBRARY_PATH",
    "PATH",
    "HOME",
    "USER",
    "SHELL",
    "IFS",
    "BASH_ENV",
    "ENV",
    "CDPATH",
    "GLOBIGNORE",
    "BASH_FUNC_",
    "PS1",
    "PS2",
    "PS4",
    "PROMPT_COMMAND",
)


def _normalize_blocked(entry: str) -> str:
    # Symlinked entries must match queries, which are canonicalized too
    normalized = os.path.normpath(os.path.realpath(entry))
    # normpath keeps a leading "//" on POSIX
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


@dataclass(frozen=True)
class SecurityPolicy:
    """Immutable set of administratively blocked path prefixes."""

    blocked_paths: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        normalized = []
        for entry in self.blocked_paths:
            if not entry:
                continue
            if not os.path.isabs(entry):
                raise ValueError(f"Blocked path must be absolute: {entry}")
            normalized.append(_normalize_blocked(entry))
        object.__setattr__(self, "blocked_paths", tuple(normalized))

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> SecurityPolicy:
        return cls(tuple(p.strip() for p in paths if p and p.strip()))

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> SecurityPolicy:
        """Build a policy from CMDRUNNER_BLOCKED_PATHS (semicolon-separated)."""
        source = os.environ if env is None else env
        raw = source.get(BLOCKED_PATHS_ENV, "")
        return cls.from_paths(raw.split(";"))


@lru_cache(maxsize=1)
def default_policy() -> SecurityPolicy:
    """Process-wide policy, read from the environment on first use."""
    policy = SecurityPolicy.from_env()
    logger.debug(f"Blocked paths: {list(policy.blocked_paths)}")
    return policy


def _policy(policy: SecurityPolicy | None) -> SecurityPolicy:
    return policy if policy is not None else default_policy()


def contains_shell_injection(s: str) -> bool:
    """Check if a string contains any blacklisted shell character."""
    return any(ch in SHELL_INJECTION_CHARS for ch in s)


def validate_argument(arg: str) -> None:
    """Raise ShellInjectionError carrying the exact argument if it is unsafe."""
    if contains_shell_injection(arg):
        raise ShellInjectionError(arg)


def is_flag_like(s: str) -> bool:
    return s.startswith("-") and s not in FLAG_SENTINELS


def validate_not_flag(arg: str) -> None:
    if is_flag_like(arg):
        raise FlagInjectionError(arg)


def contains_traversal(path: str) -> bool:
    return ".." in path


def validate_no_traversal(path: str) -> None:
    """Reject any '..' sequence, including ones canonicalization would hide."""
    if contains_traversal(path):
        raise PathTraversalError(path)


def validate_absolute_path(path: str) -> None:
    if not os.path.isabs(path):
        raise RelativeWorkingDirError(path)


def is_dangerous_env_var(name: str) -> bool:
    upper = name.upper()
    for entry in DANGEROUS_ENV_VARS:
        if entry.endswith("_"):
            if upper.startswith(entry):
                return True
        elif upper == entry:
            return True
    return False


def validate_env_var(name: str, value: str) -> None:
    """Reject dangerous names first, then metacharacters in name or value."""
    if is_dangerous_env_var(name):
        raise DangerousEnvVarError(name)
    validate_argument(name)
    validate_argument(value)


def _canonicalize(path: Path) -> Path:
    """Resolve symlinks and '.' components, or return the path as-is if missing."""
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError):
        return path


def _match_blocked(path: Path, policy: SecurityPolicy) -> str | None:
    candidate = str(_canonicalize(path))
    for blocked in policy.blocked_paths:
        prefix = blocked if blocked.endswith(os.sep) else blocked + os.sep
        if candidate == blocked or candidate.startswith(prefix):
            return blocked
    return None


def find_blocked_path(path: str, policy: SecurityPolicy | None = None) -> str | None:
    """
    Return the blocked entry covering `path`, if any.

    Relative paths are joined against the process working directory.
    """
    target = Path(path)
    if not target.is_absolute():
        target = Path(os.getcwd()) / target
    return _match_blocked(target, _policy(policy))


def validate_path(path: str, policy: SecurityPolicy | None = None) -> None:
    blocked = find_blocked_path(path, policy)
    if blocked is not None:
        raise BlockedPathError(blocked)


def validate_path_with_working_dir(
    path: str,
    working_dir: str,
    policy: SecurityPolicy | None = None,
) -> None:
    """
    Check a path as the command will see it when run from `working_dir`.

    Raises:
        RelativeWorkingDirError: If working_dir is not absolute
        BlockedPathError: If the combined path reaches a blocked location
    """
    validate_absolute_path(working_dir)
    target = Path(path)
    if not target.is_absolute():
        target = Path(working_dir) / target
    blocked = _match_blocked(target, _policy(policy))
    if blocked is not None:
        raise BlockedPathError(blocked)
