# Builtin tools package.

from dida365_mcp.tools.builtin.auth import CheckAuthStatusTool, GetAuthUrlTool, RevokeAuthTool
from dida365_mcp.tools.builtin.projects import (
    CreateProjectTool,
    DeleteProjectTool,
    GetProjectDataTool,
    GetProjectTool,
    ListProjectsTool,
    UpdateProjectTool,
)
from dida365_mcp.tools.builtin.tasks import (
    CompleteTaskTool,
    CreateTaskTool,
    DeleteTaskTool,
    GetTaskTool,
    ListTasksTool,
    UpdateTaskTool,
)

__all__ = [
    "GetAuthUrlTool",
    "CheckAuthStatusTool",
    "RevokeAuthTool",
    "ListProjectsTool",
    "GetProjectTool",
    "GetProjectDataTool",
    "CreateProjectTool",
    "UpdateProjectTool",
    "DeleteProjectTool",
    "GetTaskTool",
    "ListTasksTool",
    "CreateTaskTool",
    "UpdateTaskTool",
    "CompleteTaskTool",
    "DeleteTaskTool",
]
