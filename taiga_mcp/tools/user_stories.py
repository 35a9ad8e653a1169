import logging
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import Context

from taiga_mcp.formatting import assignee, extra_name, project_name, render_statuses, tags_text
from taiga_mcp.resolver import resolve_named_id, resolve_project_id, resolve_reference
from taiga_mcp.server import get_session, mcp, tool_errors

logger = logging.getLogger(__name__)


def render_user_story(title: str, story: Dict[str, Any]) -> str:
    return f"""{title}:

ID: {story.get('id')}
Reference: #{story.get('ref')}
Subject: {story.get('subject')}
Description: {story.get('description') or 'No description'}
Status: {extra_name(story, 'status', 'Unknown')}
Project: {project_name(story)}
Assigned To: {assignee(story)}
Points: {story.get('total_points') or 'Not estimated'}
Created: {story.get('created_date')}
Modified: {story.get('modified_date')}
Tags: {tags_text(story.get('tags'), 'No tags')}"""


@mcp.tool("create_user_story", description="Create a new user story in a project with optional description, status name and tags.")
@tool_errors("create user story")
async def create_user_story(ctx: Context, project_identifier: str, subject: str,
                            description: Optional[str] = None,
                            status: Optional[str] = None,
                            tags: Optional[List[str]] = None) -> str:
    """Creates a user story; `status` is a status name such as "New" or "In progress"."""
    logger.info(f"Executing create_user_story '{subject}' in project '{project_identifier}'")
    if not subject:
        raise ValueError("User story subject cannot be empty.")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)

    data: Dict[str, Any] = {"project": project_id, "subject": subject}
    if description is not None:
        data["description"] = description
    if status:
        data["status"] = await resolve_named_id(
            session, "userstory-statuses", project_id, status, "status")
    if tags is not None:
        data["tags"] = tags

    story = await session.post("/userstories", json=data)
    logger.info(f"User story '{subject}' created successfully (ID: {story.get('id', 'N/A')}).")
    return f"""User story created successfully!

ID: {story.get('id')}
Subject: {story.get('subject')}
Reference: #{story.get('ref')}
Status: {extra_name(story, 'status', 'Default status')}
Project: {project_name(story)}"""


@mcp.tool("list_user_stories", description="List all user stories for a specific project.")
@tool_errors("list user stories")
async def list_user_stories(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing list_user_stories for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    stories = await session.get("/userstories", params={"project": project_id}) or []
    if not stories:
        return "No user stories found in this project."
    lines = [
        f"- #{s.get('ref')}: {s.get('subject')} (ID: {s.get('id')}, Status: {extra_name(s, 'status', 'Unknown')})"
        for s in stories
    ]
    return "User Stories in Project:\n\n" + "\n".join(lines)


@mcp.tool("get_user_story", description="Get details of a specific user story by ID.")
@tool_errors("get user story")
async def get_user_story(ctx: Context, user_story_id: int) -> str:
    logger.info(f"Executing get_user_story ID {user_story_id}")
    story = await get_session(ctx).get(f"/userstories/{user_story_id}")
    return render_user_story("User Story Details", story)


@mcp.tool("get_user_story_by_ref", description="Get a user story by its reference number (e.g. 42 or #42) within a project.")
@tool_errors("get user story by reference")
async def get_user_story_by_ref(ctx: Context, project_identifier: str, ref: str) -> str:
    logger.info(f"Executing get_user_story_by_ref #{ref} in project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    reference = ref if str(ref).startswith("#") else f"#{ref}"
    story_id = await resolve_reference(session, "userstories", project_id, reference, "user story")
    story = await session.get(f"/userstories/{story_id}")
    return render_user_story("User Story Details", story)


@mcp.tool("update_user_story", description="Update an existing user story. Status is given by name.")
@tool_errors("update user story")
async def update_user_story(ctx: Context, user_story_id: int, subject: Optional[str] = None,
                            description: Optional[str] = None,
                            status_name: Optional[str] = None,
                            assigned_to: Optional[int] = None,
                            points: Optional[float] = None,
                            tags: Optional[List[str]] = None) -> str:
    logger.info(f"Executing update_user_story ID {user_story_id}")
    data: Dict[str, Any] = {}
    if subject is not None:
        data["subject"] = subject
    if description is not None:
        data["description"] = description
    if assigned_to is not None:
        data["assigned_to"] = assigned_to
    if points is not None:
        data["total_points"] = points
    if tags is not None:
        data["tags"] = tags
    if not data and status_name is None:
        raise ValueError("No fields to update were provided.")

    session = get_session(ctx)
    # The current story carries its version and the project its statuses belong to
    current = await session.get(f"/userstories/{user_story_id}")
    if status_name is not None:
        data["status"] = await resolve_named_id(
            session, "userstory-statuses", current["project"], status_name, "status")

    story = await session.patch_versioned(f"/userstories/{user_story_id}", data, current)
    logger.info(f"User story {user_story_id} updated.")
    return f"""User story updated successfully!

ID: {story.get('id')}
Reference: #{story.get('ref')}
Subject: {story.get('subject')}
Status: {extra_name(story, 'status', 'Unknown')}
Assigned To: {assignee(story)}
Points: {story.get('total_points') or 'Not estimated'}"""


@mcp.tool("delete_user_story", description="Delete a user story by ID.")
@tool_errors("delete user story")
async def delete_user_story(ctx: Context, user_story_id: int) -> str:
    logger.warning(f"Executing delete_user_story ID {user_story_id}")
    await get_session(ctx).delete(f"/userstories/{user_story_id}")
    logger.info(f"User story {user_story_id} deleted successfully.")
    return f"User story {user_story_id} has been deleted successfully."


@mcp.tool("assign_user_story", description="Assign a user story to a specific user.")
@tool_errors("assign user story")
async def assign_user_story(ctx: Context, user_story_id: int, user_id: int) -> str:
    logger.info(f"Executing assign_user_story: US {user_story_id} -> User {user_id}")
    story = await get_session(ctx).patch_versioned(f"/userstories/{user_story_id}",
                                                   {"assigned_to": user_id})
    return f"""User story assigned successfully!

Story: #{story.get('ref')} - {story.get('subject')}
Assigned To: {assignee(story, str(user_id))}"""


@mcp.tool("unassign_user_story", description="Unassign a user story from its current user.")
@tool_errors("unassign user story")
async def unassign_user_story(ctx: Context, user_story_id: int) -> str:
    logger.info(f"Executing unassign_user_story: US {user_story_id}")
    story = await get_session(ctx).patch_versioned(f"/userstories/{user_story_id}",
                                                   {"assigned_to": None})
    return f"""User story unassigned successfully!

Story: #{story.get('ref')} - {story.get('subject')}
Status: Now unassigned"""


@mcp.tool("get_user_story_statuses", description="Get all available user story statuses for a project.")
@tool_errors("get user story statuses")
async def get_user_story_statuses(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing get_user_story_statuses for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    statuses = await session.get("/userstory-statuses", params={"project": project_id}) or []
    return render_statuses("User Story Statuses for Project", statuses)
