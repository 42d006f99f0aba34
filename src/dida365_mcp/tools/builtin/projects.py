# Project tools — list, inspect, create, update and delete Dida365 projects.
# Created: 2026-10-19

import logging
from typing import Any

from dida365_mcp.api.client import DidaClient
from dida365_mcp.tools.protocol import BaseTool

logger = logging.getLogger(__name__)

VIEW_MODES = ["list", "kanban", "timeline"]
PROJECT_KINDS = ["TASK", "NOTE"]
PROJECT_FIELDS = ("name", "color", "sortOrder", "viewMode", "kind")

_PROJECT_ID = {"type": "string", "description": "The unique ID of the project"}


def _project_properties(required_name: bool) -> dict[str, Any]:
    name_hint = "The name of the project" if required_name else "New project name. Optional."
    return {
        "name": {"type": "string", "description": name_hint},
        "color": {
            "type": "string",
            "description": "Project color in hex format (e.g. '#F18181'). Optional.",
        },
        "sortOrder": {"type": "integer", "description": "Sort order. Optional."},
        "viewMode": {
            "type": "string",
            "enum": VIEW_MODES,
            "description": "View mode (default 'list'). Optional.",
        },
        "kind": {
            "type": "string",
            "enum": PROJECT_KINDS,
            "description": "'TASK' for tasks or 'NOTE' for notes (default 'TASK'). Optional.",
        },
    }


class ListProjectsTool(BaseTool):
    """List all projects of the authorized user."""

    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "list_projects"

    @property
    def title(self) -> str:
        return "List Projects"

    @property
    def description(self) -> str:
        return (
            "List all Dida365 projects (lists) of the user. The inbox is not included; "
            "use 'inbox' as the project ID to address it."
        )

    async def execute(self) -> str:
        try:
            projects = await self._client.list_projects()
        except Exception as e:
            return self._failure("list projects", e)

        if not projects:
            return self._success("No projects found.")
        return self._json(projects, summary=f"Found {len(projects)} project(s)")


class GetProjectTool(BaseTool):
    """Fetch one project's metadata."""

    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "get_project"

    @property
    def title(self) -> str:
        return "Get Project"

    @property
    def description(self) -> str:
        return "Get a Dida365 project by its ID."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"projectId": _PROJECT_ID},
            "required": ["projectId"],
        }

    async def execute(self, projectId: str) -> str:
        if not projectId or not projectId.strip():
            return self._error("projectId is required")
        try:
            project = await self._client.get_project(projectId.strip())
        except Exception as e:
            return self._failure("get project", e)
        return self._json(project)


class GetProjectDataTool(BaseTool):
    """Fetch a project with its undone tasks and kanban columns."""

    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "get_project_data"

    @property
    def title(self) -> str:
        return "Get Project Data"

    @property
    def description(self) -> str:
        return (
            "Get a Dida365 project together with all of its uncompleted tasks and kanban "
            "columns. Use 'inbox' as projectId for the inbox. For filtered views across "
            "projects use 'list_tasks'."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"projectId": _PROJECT_ID},
            "required": ["projectId"],
        }

    async def execute(self, projectId: str) -> str:
        if not projectId or not projectId.strip():
            return self._error("projectId is required")
        try:
            data = await self._client.get_project_data(projectId.strip())
        except Exception as e:
            return self._failure("get project data", e)

        summary = f"Project has {len(data['tasks'])} uncompleted task(s)"
        return self._json(data, summary=summary)


class CreateProjectTool(BaseTool):
    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "create_project"

    @property
    def title(self) -> str:
        return "Create Project"

    @property
    def description(self) -> str:
        return "Create a new Dida365 project. Returns the created project."

    @property
    def trust_level(self) -> str:
        return "high"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": _project_properties(required_name=True),
            "required": ["name"],
        }

    async def execute(self, name: str, **fields: Any) -> str:
        if not name or not name.strip():
            return self._error("name is required and must be a non-empty string")
        body = self._pick({**fields, "name": name.strip()}, PROJECT_FIELDS)
        try:
            project = await self._client.create_project(body)
        except Exception as e:
            return self._failure("create project", e)
        return self._json(project, summary="Project created successfully!")


class UpdateProjectTool(BaseTool):
    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "update_project"

    @property
    def title(self) -> str:
        return "Update Project"

    @property
    def description(self) -> str:
        return "Update an existing Dida365 project. Only the provided fields change."

    @property
    def trust_level(self) -> str:
        return "high"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"projectId": _PROJECT_ID, **_project_properties(required_name=False)},
            "required": ["projectId"],
        }

    async def execute(self, projectId: str, **fields: Any) -> str:
        if not projectId or not projectId.strip():
            return self._error("projectId is required")
        body = self._pick(fields, PROJECT_FIELDS)
        if not body:
            return self._error(f"Nothing to update; provide at least one of {', '.join(PROJECT_FIELDS)}")
        try:
            project = await self._client.update_project(projectId.strip(), body)
        except Exception as e:
            return self._failure("update project", e)
        return self._json(project, summary="Project updated successfully!")


class DeleteProjectTool(BaseTool):
    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "delete_project"

    @property
    def title(self) -> str:
        return "Delete Project"

    @property
    def description(self) -> str:
        return (
            "Permanently delete a Dida365 project and all of its tasks. This cannot be "
            "undone; confirm with the user first."
        )

    @property
    def trust_level(self) -> str:
        return "critical"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"projectId": _PROJECT_ID},
            "required": ["projectId"],
        }

    async def execute(self, projectId: str) -> str:
        if not projectId or not projectId.strip():
            return self._error("projectId is required")
        try:
            await self._client.delete_project(projectId.strip())
        except Exception as e:
            return self._failure("delete project", e)

        logger.info("Deleted project %s", projectId)
        return self._json({"projectId": projectId.strip()}, summary="Project deleted successfully!")
