"""cmdrunner tools - validation, execution, transforms and the ls/git adapters."""

from cmdrunner_mcp.tools.errors import (  # noqa: F401
    InvalidRequestError,
    ValidationError,
)
from cmdrunner_mcp.tools.executor import (  # noqa: F401
    ExecutionContext,
    ExecutionResult,
    run_command,
)
from cmdrunner_mcp.tools.request import (  # noqa: F401
    TOOL_ADAPTERS,
    ToolRequest,
    run_request,
    run_tool,
)
from cmdrunner_mcp.tools.security import SecurityPolicy, default_policy  # noqa: F401
from cmdrunner_mcp.tools.transform import (  # noqa: F401
    Transformation,
    TransformOptions,
    apply_transforms,
)
