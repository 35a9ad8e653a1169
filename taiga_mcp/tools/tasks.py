import logging
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import Context

from taiga_mcp.formatting import assignee, extra_name, project_name, render_statuses
from taiga_mcp.resolver import resolve_named_id, resolve_project_id, resolve_reference
from taiga_mcp.server import get_session, mcp, tool_errors

logger = logging.getLogger(__name__)


@mcp.tool("create_task", description="Create a new task attached to a user story (given by ID or #reference) with optional description, status name and tags.")
@tool_errors("create task")
async def create_task(ctx: Context, project_identifier: str, user_story_identifier: str,
                      subject: str, description: Optional[str] = None,
                      status: Optional[str] = None,
                      tags: Optional[List[str]] = None) -> str:
    logger.info(f"Executing create_task '{subject}' in project '{project_identifier}'")
    if not subject:
        raise ValueError("Task subject cannot be empty.")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    user_story_id = await resolve_reference(
        session, "userstories", project_id, user_story_identifier, "user story")

    data: Dict[str, Any] = {"project": project_id, "user_story": user_story_id, "subject": subject}
    if description is not None:
        data["description"] = description
    if status:
        data["status"] = await resolve_named_id(
            session, "task-statuses", project_id, status, "status")
    if tags is not None:
        data["tags"] = tags

    task = await session.post("/tasks", json=data)
    logger.info(f"Task '{subject}' created successfully (ID: {task.get('id', 'N/A')}).")
    story = task.get("user_story_extra_info") or {}
    return f"""Task created successfully!

ID: {task.get('id')}
Subject: {task.get('subject')}
Reference: #{task.get('ref')}
Status: {extra_name(task, 'status', 'Default status')}
Project: {project_name(task)}
User Story: #{story.get('ref')} - {story.get('subject')}"""


@mcp.tool("list_tasks", description="List tasks for a project, optionally filtered by user story ID, assigned user ID or status name.")
@tool_errors("list tasks")
async def list_tasks(ctx: Context, project_identifier: str, user_story_id: Optional[int] = None,
                     assigned_to: Optional[int] = None, status: Optional[str] = None) -> str:
    logger.info(f"Executing list_tasks for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    params: Dict[str, Any] = {
        "project": project_id,
        "user_story": user_story_id,
        "assigned_to": assigned_to,
    }
    if status:
        params["status"] = await resolve_named_id(
            session, "task-statuses", project_id, status, "status")

    tasks = await session.get("/tasks", params=params) or []
    if not tasks:
        return "No tasks found in this project."
    lines = [
        f"- #{t.get('ref')}: {t.get('subject')} (ID: {t.get('id')}, Status: {extra_name(t, 'status', 'Unknown')})"
        for t in tasks
    ]
    return "Tasks in Project:\n\n" + "\n".join(lines)


@mcp.tool("get_task", description="Get details of a specific task by ID.")
@tool_errors("get task")
async def get_task(ctx: Context, task_id: int) -> str:
    logger.info(f"Executing get_task ID {task_id}")
    task = await get_session(ctx).get(f"/tasks/{task_id}")
    story = task.get("user_story_extra_info") or {}
    return f"""Task Details:
ID: {task.get('id')}
Reference: #{task.get('ref')}
Subject: {task.get('subject')}
Description: {task.get('description') or 'No description'}
Status: {extra_name(task, 'status', 'Unknown')}
Assigned to: {assignee(task)}
Project: {project_name(task)}
User Story: {story.get('subject') or 'None'}
Created: {task.get('created_date')}
Modified: {task.get('modified_date')}
Due Date: {task.get('due_date') or 'No due date'}
Watchers: {len(task.get('watchers') or [])}"""


@mcp.tool("update_task", description="Update an existing task. Status is given by name; due date as YYYY-MM-DD.")
@tool_errors("update task")
async def update_task(ctx: Context, task_id: int, subject: Optional[str] = None,
                      description: Optional[str] = None, status_name: Optional[str] = None,
                      assigned_to: Optional[int] = None, due_date: Optional[str] = None) -> str:
    logger.info(f"Executing update_task ID {task_id}")
    data: Dict[str, Any] = {}
    if subject is not None:
        data["subject"] = subject
    if description is not None:
        data["description"] = description
    if assigned_to is not None:
        data["assigned_to"] = assigned_to
    if due_date is not None:
        data["due_date"] = due_date
    if not data and status_name is None:
        raise ValueError("No fields to update were provided.")

    session = get_session(ctx)
    current = await session.get(f"/tasks/{task_id}")
    if status_name is not None:
        data["status"] = await resolve_named_id(
            session, "task-statuses", current["project"], status_name, "status")

    task = await session.patch_versioned(f"/tasks/{task_id}", data, current)
    logger.info(f"Task {task_id} updated.")
    return f"""Task updated successfully:
ID: {task.get('id')}
Subject: {task.get('subject')}
Status: {extra_name(task, 'status', 'Unknown')}
Assigned to: {assignee(task)}"""


@mcp.tool("delete_task", description="Delete a task by ID.")
@tool_errors("delete task")
async def delete_task(ctx: Context, task_id: int) -> str:
    logger.warning(f"Executing delete_task ID {task_id}")
    await get_session(ctx).delete(f"/tasks/{task_id}")
    logger.info(f"Task {task_id} deleted successfully.")
    return f"Task {task_id} has been deleted successfully."


@mcp.tool("assign_task", description="Assign a task to a user.")
@tool_errors("assign task")
async def assign_task(ctx: Context, task_id: int, user_id: int) -> str:
    logger.info(f"Executing assign_task: Task {task_id} -> User {user_id}")
    task = await get_session(ctx).patch_versioned(f"/tasks/{task_id}", {"assigned_to": user_id})
    return f"Task {task_id} has been assigned to {assignee(task, f'user {user_id}')}."


@mcp.tool("unassign_task", description="Unassign a task from its current user.")
@tool_errors("unassign task")
async def unassign_task(ctx: Context, task_id: int) -> str:
    logger.info(f"Executing unassign_task: Task {task_id}")
    await get_session(ctx).patch_versioned(f"/tasks/{task_id}", {"assigned_to": None})
    return f"Task {task_id} has been unassigned."


@mcp.tool("get_task_statuses", description="Get all available task statuses for a project.")
@tool_errors("get task statuses")
async def get_task_statuses(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing get_task_statuses for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    statuses = await session.get("/task-statuses", params={"project": project_id}) or []
    return render_statuses("Task Statuses for Project", statuses)
