import logging
from typing import Any, Dict, Optional

from mcp.server.fastmcp import Context

from taiga_mcp.formatting import assignee, extra_name, project_name, render_statuses, tags_text
from taiga_mcp.resolver import resolve_named_id, resolve_project_id
from taiga_mcp.server import get_session, mcp, tool_errors

logger = logging.getLogger(__name__)


def render_epic_header(epic: Dict[str, Any]) -> str:
    return f"""Epic #{epic.get('ref')}: {epic.get('subject')}
ID: {epic.get('id')}
Project: {project_name(epic)}
Status: {extra_name(epic, 'status')}
Assigned to: {assignee(epic)}
Color: {epic.get('color') or 'Default'}"""


@mcp.tool("list_epics", description="List epics for a project, optionally filtered by status name and assigned user ID.")
@tool_errors("list epics")
async def list_epics(ctx: Context, project_identifier: str, status: Optional[str] = None,
                     assigned_to: Optional[int] = None) -> str:
    logger.info(f"Executing list_epics for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    params: Dict[str, Any] = {"project": project_id, "assigned_to": assigned_to}
    if status:
        params["status"] = await resolve_named_id(
            session, "epic-statuses", project_id, status, "status")

    epics = await session.get("/epics", params=params) or []
    if not epics:
        return f"No epics found in project {project_identifier}."
    blocks = []
    for epic in epics:
        block = f"""Epic #{epic.get('ref')}: {epic.get('subject')} (ID: {epic.get('id')})
  - Status: {extra_name(epic, 'status')}
  - Assigned to: {assignee(epic)}
  - Created: {epic.get('created_date')}
  - Color: {epic.get('color') or 'Default'}"""
        if epic.get("description"):
            block += f"\n  - Description: {epic['description']}"
        blocks.append(block)
    return (f"Epics for project {project_identifier}:\n\n" + "\n\n".join(blocks)
            + f"\n\nTotal: {len(epics)} epic(s)")


@mcp.tool("get_epic", description="Get details of a specific epic by ID.")
@tool_errors("get epic")
async def get_epic(ctx: Context, epic_id: int) -> str:
    logger.info(f"Executing get_epic ID {epic_id}")
    epic = await get_session(ctx).get(f"/epics/{epic_id}")
    return f"""Epic Details:

{render_epic_header(epic)}
Created: {epic.get('created_date')}
Modified: {epic.get('modified_date')}
Description: {epic.get('description') or 'No description'}
Tags: {tags_text(epic.get('tags'))}
Watchers: {len(epic.get('watchers') or [])}"""


@mcp.tool("create_epic", description="Create a new epic in a project.")
@tool_errors("create epic")
async def create_epic(ctx: Context, project_identifier: str, subject: str,
                      description: Optional[str] = None, color: Optional[str] = None,
                      assigned_to: Optional[int] = None) -> str:
    logger.info(f"Executing create_epic '{subject}' in project '{project_identifier}'")
    if not subject:
        raise ValueError("Epic subject cannot be empty.")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    data: Dict[str, Any] = {"project": project_id, "subject": subject}
    if description:
        data["description"] = description
    if color:
        data["color"] = color
    if assigned_to is not None:
        data["assigned_to"] = assigned_to

    epic = await session.post("/epics", json=data)
    logger.info(f"Epic '{subject}' created successfully (ID: {epic.get('id', 'N/A')}).")
    return f"Epic created successfully!\n\n{render_epic_header(epic)}\nCreated: {epic.get('created_date')}"


@mcp.tool("update_epic", description="Update an existing epic. Status is given by name.")
@tool_errors("update epic")
async def update_epic(ctx: Context, epic_id: int, subject: Optional[str] = None,
                      description: Optional[str] = None, color: Optional[str] = None,
                      assigned_to: Optional[int] = None,
                      status_name: Optional[str] = None) -> str:
    logger.info(f"Executing update_epic ID {epic_id}")
    data: Dict[str, Any] = {}
    if subject is not None:
        data["subject"] = subject
    if description is not None:
        data["description"] = description
    if color is not None:
        data["color"] = color
    if assigned_to is not None:
        data["assigned_to"] = assigned_to
    if not data and status_name is None:
        raise ValueError("No fields to update were provided.")

    session = get_session(ctx)
    current = await session.get(f"/epics/{epic_id}")
    if status_name is not None:
        data["status"] = await resolve_named_id(
            session, "epic-statuses", current["project"], status_name, "status")

    epic = await session.patch_versioned(f"/epics/{epic_id}", data, current)
    logger.info(f"Epic {epic_id} updated.")
    return f"Epic updated successfully!\n\n{render_epic_header(epic)}\nModified: {epic.get('modified_date')}"


@mcp.tool("delete_epic", description="Delete an epic by ID.")
@tool_errors("delete epic")
async def delete_epic(ctx: Context, epic_id: int) -> str:
    logger.warning(f"Executing delete_epic ID {epic_id}")
    await get_session(ctx).delete(f"/epics/{epic_id}")
    logger.info(f"Epic {epic_id} deleted successfully.")
    return f"Epic {epic_id} deleted successfully."


@mcp.tool("assign_epic", description="Assign an epic to a user.")
@tool_errors("assign epic")
async def assign_epic(ctx: Context, epic_id: int, user_id: int) -> str:
    logger.info(f"Executing assign_epic: Epic {epic_id} -> User {user_id}")
    epic = await get_session(ctx).patch_versioned(f"/epics/{epic_id}", {"assigned_to": user_id})
    return f"""Epic assigned successfully!

Epic #{epic.get('ref')}: {epic.get('subject')}
Assigned to: {assignee(epic, str(user_id))}"""


@mcp.tool("unassign_epic", description="Unassign an epic from its current user.")
@tool_errors("unassign epic")
async def unassign_epic(ctx: Context, epic_id: int) -> str:
    logger.info(f"Executing unassign_epic: Epic {epic_id}")
    epic = await get_session(ctx).patch_versioned(f"/epics/{epic_id}", {"assigned_to": None})
    return f"""Epic unassigned successfully!

Epic #{epic.get('ref')}: {epic.get('subject')}
Status: Unassigned"""


@mcp.tool("get_epic_statuses", description="Get all available epic statuses for a project.")
@tool_errors("get epic statuses")
async def get_epic_statuses(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing get_epic_statuses for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    statuses = await session.get("/epic-statuses", params={"project": project_id}) or []
    return render_statuses(f"Epic Statuses for project {project_identifier}", statuses)


@mcp.tool("link_user_story_to_epic", description="Link a user story to an epic (both by ID).")
@tool_errors("link user story to epic")
async def link_user_story_to_epic(ctx: Context, epic_id: int, user_story_id: int) -> str:
    logger.info(f"Executing link_user_story_to_epic: US {user_story_id} -> Epic {epic_id}")
    await get_session(ctx).post(f"/epics/{epic_id}/related_userstories", json={
        "epic": epic_id,
        "user_story": user_story_id,
    })
    return f"User story {user_story_id} linked to epic {epic_id}."
