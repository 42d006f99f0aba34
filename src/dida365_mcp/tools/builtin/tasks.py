# Task tools — read, list/filter, create, update, complete and delete tasks.
# Created: 2026-10-19

import logging
from typing import Any

from dida365_mcp.api.client import DidaClient
from dida365_mcp.errors import ApiError, AuthError
from dida365_mcp.tools.batch import (
    batch_execute,
    format_batch_results,
    format_batch_results_simple,
)
from dida365_mcp.tools.filters import PRESETS, SORT_FIELDS, filter_tasks, sort_tasks
from dida365_mcp.tools.protocol import BaseTool

logger = logging.getLogger(__name__)

INBOX = "inbox"
DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200

TASK_FIELDS = (
    "title",
    "content",
    "desc",
    "isAllDay",
    "startDate",
    "dueDate",
    "timeZone",
    "reminders",
    "repeatFlag",
    "priority",
    "sortOrder",
    "items",
)

_CHECKLIST_ITEM = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "Sub-task title"},
        "startDate": {"type": "string", "description": "Start time, yyyy-MM-dd'T'HH:mm:ssZ"},
        "isAllDay": {"type": "boolean"},
        "sortOrder": {"type": "integer"},
        "timeZone": {"type": "string"},
        "status": {"type": "integer", "description": "0=normal, 1=completed"},
        "completedTime": {"type": "string", "description": "yyyy-MM-dd'T'HH:mm:ssZ"},
    },
    "required": ["title", "status"],
}

_TASK_FIELD_SCHEMA: dict[str, Any] = {
    "title": {"type": "string", "description": "Task title"},
    "content": {
        "type": "string",
        "description": "Task notes. Overwritten by checklist data when 'items' is set; use 'desc' then.",
    },
    "desc": {"type": "string", "description": "Task description"},
    "isAllDay": {"type": "boolean", "description": "All-day task (default false)"},
    "startDate": {"type": "string", "description": "Start time, ISO 8601 e.g. 2025-11-25T17:00:00+0800"},
    "dueDate": {"type": "string", "description": "Due time, ISO 8601 e.g. 2025-11-25T17:00:00+0800"},
    "timeZone": {"type": "string", "description": "e.g. America/Los_Angeles"},
    "reminders": {
        "type": "array",
        "items": {"type": "string"},
        "description": "e.g. ['TRIGGER:PT0S'] at due time, ['TRIGGER:-PT30M'] 30 min before",
    },
    "repeatFlag": {"type": "string", "description": "e.g. RRULE:FREQ=DAILY;INTERVAL=1"},
    "priority": {"type": "integer", "description": "0=none, 1=low, 3=medium, 5=high"},
    "sortOrder": {"type": "integer"},
    "items": {"type": "array", "items": _CHECKLIST_ITEM, "description": "Sub-tasks"},
}

_TASK_REF = {
    "type": "object",
    "properties": {
        "taskId": {"type": "string", "description": "Task ID"},
        "projectId": {"type": "string", "description": "Project ID"},
    },
    "required": ["taskId", "projectId"],
}


def _require(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field} is required and must be a non-empty string")
    return value.strip()


def _batch_message(summary: dict[str, int], verb: str, action: str) -> str:
    total, failed = summary["total"], summary["failed"]
    if failed == 0:
        return f"Task {verb} successfully!" if total == 1 else f"All {total} tasks {verb} successfully!"
    if summary["succeeded"] == 0:
        return f"Error: Failed to {action} task" if total == 1 else f"Error: Failed to {action} all {total} tasks"
    return f"{verb.capitalize()} {summary['succeeded']}/{total} tasks. {failed} failed."


class GetTaskTool(BaseTool):
    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "get_task"

    @property
    def title(self) -> str:
        return "Get Task"

    @property
    def description(self) -> str:
        return "Get a single Dida365 task by project ID and task ID."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "projectId": {"type": "string", "description": "Project ID"},
                "taskId": {"type": "string", "description": "Task ID"},
            },
            "required": ["projectId", "taskId"],
        }

    async def execute(self, projectId: str, taskId: str) -> str:
        try:
            project_id = _require(projectId, "projectId")
            task_id = _require(taskId, "taskId")
        except ValueError as e:
            return self._error(str(e))
        try:
            task = await self._client.get_task(project_id, task_id)
        except Exception as e:
            return self._failure("get task", e)
        return self._json(task)


class ListTasksTool(BaseTool):
    """List, filter and sort uncompleted tasks across projects and the inbox."""

    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "list_tasks"

    @property
    def title(self) -> str:
        return "List Tasks"

    @property
    def description(self) -> str:
        return (
            "List and filter uncompleted tasks across one or more projects. "
            "Quick filters (preset): today, tomorrow, thisWeek, overdue. "
            "Optional: projectId (one ID, a list, or 'inbox'; omit for all projects plus inbox), "
            "dueDateFrom/dueDateTo (ISO 8601), priority [0,1,3,5]. "
            "sortBy dueDate|priority|createdTime, sortOrder asc|desc. "
            f"Returns at most {MAX_LIST_LIMIT} tasks (default {DEFAULT_LIST_LIMIT}). "
            "Completed tasks are not available."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "projectId": {
                    "oneOf": [
                        {"type": "string"},
                        {"type": "array", "items": {"type": "string"}},
                    ],
                    "description": "Project ID(s). Use 'inbox' for the inbox. Omit for all projects.",
                },
                "dueDateFrom": {"type": "string", "description": "Due date >= this (ISO 8601)"},
                "dueDateTo": {"type": "string", "description": "Due date <= this (ISO 8601)"},
                "priority": {
                    "oneOf": [
                        {"type": "integer"},
                        {"type": "array", "items": {"type": "integer"}},
                    ],
                    "description": "0=none, 1=low, 3=medium, 5=high",
                },
                "preset": {"type": "string", "enum": list(PRESETS)},
                "limit": {
                    "type": "integer",
                    "description": f"Max tasks (default {DEFAULT_LIST_LIMIT}, max {MAX_LIST_LIMIT})",
                },
                "sortBy": {"type": "string", "enum": list(SORT_FIELDS)},
                "sortOrder": {"type": "string", "enum": ["asc", "desc"]},
            },
            "required": [],
        }

    async def execute(
        self,
        projectId: str | list[str] | None = None,
        dueDateFrom: str | None = None,
        dueDateTo: str | None = None,
        priority: int | list[int] | None = None,
        preset: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        sortBy: str = "dueDate",
        sortOrder: str = "asc",
    ) -> str:
        if preset and preset not in PRESETS:
            return self._error(f"Unknown preset '{preset}'. Use one of: {', '.join(PRESETS)}")
        if sortBy not in SORT_FIELDS:
            return self._error(f"Unknown sortBy '{sortBy}'. Use one of: {', '.join(SORT_FIELDS)}")
        if sortOrder not in ("asc", "desc"):
            return self._error("sortOrder must be 'asc' or 'desc'")

        project_ids = [projectId] if isinstance(projectId, str) else projectId
        priorities = [priority] if isinstance(priority, int) else priority
        effective_limit = max(1, min(int(limit), MAX_LIST_LIMIT))

        try:
            projects = await self._client.list_projects()
        except Exception as e:
            return self._failure("list tasks", e)

        if project_ids:
            include_inbox = any(pid.lower() == INBOX for pid in project_ids)
            wanted = {pid for pid in project_ids if pid.lower() != INBOX}
            targets = [p for p in projects if p.get("id") in wanted]
        else:
            include_inbox = True
            targets = projects

        all_tasks: list[dict[str, Any]] = []
        sources: list[str] = []
        fetches = [(p["id"], p.get("name") or p["id"]) for p in targets]
        if include_inbox:
            fetches.append((INBOX, "Inbox"))

        for project_id, label in fetches:
            try:
                data = await self._client.get_project_data(project_id)
            except (AuthError, ApiError) as e:
                if isinstance(e, AuthError) or e.is_unauthorized:
                    return self._failure("list tasks", e)
                logger.warning("Skipping tasks of %s: %s", label, e)
                continue
            all_tasks.extend(data["tasks"])
            sources.append(label)

        has_filters = bool(dueDateFrom or dueDateTo or priorities or preset)
        try:
            filtered = filter_tasks(
                all_tasks,
                due_from=dueDateFrom,
                due_to=dueDateTo,
                priority=priorities,
                preset=preset,
            )
        except ValueError as e:
            return self._error(str(e))
        ordered = sort_tasks(filtered, sort_by=sortBy, sort_order=sortOrder)

        limited = ordered[:effective_limit]
        output = {
            "tasks": limited,
            "total": len(limited),
            "totalBeforeLimit": len(ordered),
            "filtered": has_filters,
            "truncated": len(limited) < len(ordered),
            "projects": sources,
        }
        summary = f"Found {len(ordered)} task(s){' (filtered)' if has_filters else ''} from {len(sources)} project(s)"
        if output["truncated"]:
            summary += f", showing first {len(limited)}"
        return self._json(output, summary=summary)


class CreateTaskTool(BaseTool):
    """Create one or more tasks; not atomic."""

    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "create_task"

    @property
    def title(self) -> str:
        return "Create Task(s)"

    @property
    def description(self) -> str:
        return (
            "Create one or more tasks. Input: {\"tasks\": [{\"title\": ..., \"projectId\": ...}, ...]}. "
            "Use 'inbox' as projectId for the inbox; the created task then reports the real "
            "inbox ID (e.g. 'inbox1023997016') to use for later updates. Not atomic: check "
            "summary.failed and retry failedItems. Use 'desc' rather than 'content' for tasks "
            "with sub-task items."
        )

    @property
    def trust_level(self) -> str:
        return "high"

    @property
    def parameters(self) -> dict[str, Any]:
        task_schema = {
            "type": "object",
            "properties": {
                "projectId": {"type": "string", "description": "Project ID or 'inbox'"},
                **_TASK_FIELD_SCHEMA,
            },
            "required": ["title", "projectId"],
        }
        return {
            "type": "object",
            "properties": {
                "tasks": {
                    "type": "array",
                    "items": task_schema,
                    "minItems": 1,
                    "description": "Tasks to create",
                }
            },
            "required": ["tasks"],
        }

    async def execute(self, tasks: list[dict[str, Any]]) -> str:
        if not tasks:
            return self._error("tasks array is required and must contain at least one task")

        requests: list[dict[str, Any]] = []
        for i, task in enumerate(tasks):
            try:
                title = _require(task.get("title"), f"tasks[{i}].title")
                project_id = _require(task.get("projectId"), f"tasks[{i}].projectId")
            except (ValueError, AttributeError) as e:
                return self._error(str(e))
            requests.append({**self._pick(task, TASK_FIELDS), "title": title, "projectId": project_id})

        results = await batch_execute(requests, self._client.create_task)
        output = format_batch_results(results)
        return self._json(output, summary=_batch_message(output["summary"], "created", "create"))


class UpdateTaskTool(BaseTool):
    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "update_task"

    @property
    def title(self) -> str:
        return "Update Task"

    @property
    def description(self) -> str:
        return "Update an existing task. Only the provided fields change. Returns the updated task."

    @property
    def trust_level(self) -> str:
        return "high"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "taskId": {"type": "string", "description": "Task ID"},
                "projectId": {"type": "string", "description": "Project ID"},
                **_TASK_FIELD_SCHEMA,
            },
            "required": ["taskId", "projectId"],
        }

    async def execute(self, taskId: str, projectId: str, **fields: Any) -> str:
        try:
            task_id = _require(taskId, "taskId")
            project_id = _require(projectId, "projectId")
        except ValueError as e:
            return self._error(str(e))

        body = {"id": task_id, "projectId": project_id, **self._pick(fields, TASK_FIELDS)}
        try:
            task = await self._client.update_task(task_id, body)
        except Exception as e:
            return self._failure("update task", e)
        return self._json(task, summary="Task updated successfully!")


class CompleteTaskTool(BaseTool):
    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "complete_task"

    @property
    def title(self) -> str:
        return "Complete Task"

    @property
    def description(self) -> str:
        return "Mark a task as completed."

    @property
    def trust_level(self) -> str:
        return "high"

    @property
    def parameters(self) -> dict[str, Any]:
        return _TASK_REF

    async def execute(self, taskId: str, projectId: str) -> str:
        try:
            task_id = _require(taskId, "taskId")
            project_id = _require(projectId, "projectId")
        except ValueError as e:
            return self._error(str(e))
        try:
            await self._client.complete_task(project_id, task_id)
        except Exception as e:
            return self._failure("complete task", e)
        return self._json(
            {"taskId": task_id, "projectId": project_id}, summary="Task completed successfully!"
        )


class DeleteTaskTool(BaseTool):
    """Delete one or more tasks; not atomic."""

    def __init__(self, client: DidaClient):
        self._client = client

    @property
    def name(self) -> str:
        return "delete_task"

    @property
    def title(self) -> str:
        return "Delete Task(s)"

    @property
    def description(self) -> str:
        return (
            "Permanently delete one or more tasks. Input: {\"tasks\": [{\"taskId\": ..., "
            "\"projectId\": ...}, ...]}. Not atomic: check summary.failed and retry failedItems."
        )

    @property
    def trust_level(self) -> str:
        return "critical"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "tasks": {
                    "type": "array",
                    "items": _TASK_REF,
                    "minItems": 1,
                    "description": "Tasks to delete",
                }
            },
            "required": ["tasks"],
        }

    async def execute(self, tasks: list[dict[str, Any]]) -> str:
        if not tasks:
            return self._error("tasks array is required and must contain at least one task reference")

        refs: list[dict[str, Any]] = []
        for i, ref in enumerate(tasks):
            try:
                refs.append(
                    {
                        "taskId": _require(ref.get("taskId"), f"tasks[{i}].taskId"),
                        "projectId": _require(ref.get("projectId"), f"tasks[{i}].projectId"),
                    }
                )
            except (ValueError, AttributeError) as e:
                return self._error(str(e))

        async def delete(ref: dict[str, Any]) -> None:
            await self._client.delete_task(ref["projectId"], ref["taskId"])

        results = await batch_execute(refs, delete)
        output = format_batch_results_simple(results)
        return self._json(output, summary=_batch_message(output["summary"], "deleted", "delete"))
