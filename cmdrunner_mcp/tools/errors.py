"""
Validation error types.

Every rejection carries the offending value and a stable error code, and renders
its own user-facing message.
"""

from __future__ import annotations

# Displayed alongside shell-injection rejections
SHELL_INJECTION_CHARS_DISPLAY = "; | & $ ` ( ) { } [ ] < > ' \" \\ * ? ! #"

TRANSFORM_HINT = (
    "Use grep_pattern, head, tail, sort, or unique parameters to filter/transform "
    "output instead of shell operators."
)


class ValidationError(Exception):
    """Base error for rejected requests."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, value: str, message: str | None = None):
        self.value = value
        super().__init__(message or self.render())

    def render(self) -> str:
        return f"Invalid value '{self.value}'"


class ShellInjectionError(ValidationError):
    """Argument contains shell metacharacters."""

    code = "SHELL_INJECTION"

    def render(self) -> str:
        return (
            f"'{self.value}' contains invalid characters. "
            f"Forbidden characters: {SHELL_INJECTION_CHARS_DISPLAY}. {TRANSFORM_HINT}"
        )


class BlockedPathError(ValidationError):
    """Path is, or is under, an administratively blocked path."""

    code = "BLOCKED_PATH"

    def render(self) -> str:
        return f"Reading path '{self.value}' is not allowed"


class FlagInjectionError(ValidationError):
    """Positional argument looks like a command-line option."""

    code = "FLAG_INJECTION"

    def render(self) -> str:
        return f"'{self.value}' looks like a command-line flag. Flags are not accepted here"


class DangerousEnvVarError(ValidationError):
    """Environment variable name can alter how programs are loaded or run."""

    code = "DANGEROUS_ENV_VAR"

    def render(self) -> str:
        return f"Setting environment variable '{self.value}' is not allowed"


class PathTraversalError(ValidationError):
    """Path contains a '..' sequence."""

    code = "PATH_TRAVERSAL"

    def render(self) -> str:
        return f"Path '{self.value}' contains '..' which is not allowed"


class RelativeWorkingDirError(ValidationError):
    """Working directory is not absolute."""

    code = "RELATIVE_WORKING_DIR"

    def render(self) -> str:
        return f"Working directory '{self.value}' must be an absolute path"


class DisallowedSubcommandError(ValidationError):
    """Subcommand is not on the tool's allow-list."""

    code = "DISALLOWED_SUBCOMMAND"

    def __init__(self, subcommand: str, allowed: tuple[str, ...] | list[str]):
        self.subcommand = subcommand
        self.allowed = tuple(allowed)
        super().__init__(subcommand)

    def render(self) -> str:
        return (
            f"Subcommand '{self.subcommand}' is not allowed. "
            f"Allowed subcommands: {', '.join(self.allowed)}"
        )


class InvalidRequestError(Exception):
    """Tool arguments could not be parsed into a request."""

    code = "INVALID_REQUEST"
