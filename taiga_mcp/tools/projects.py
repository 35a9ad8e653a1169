import logging
from typing import Any, Dict, Optional

from mcp.server.fastmcp import Context

from taiga_mcp.formatting import yes_no
from taiga_mcp.resolver import resolve_project_id
from taiga_mcp.server import get_session, mcp, tool_errors

logger = logging.getLogger(__name__)


def render_project_list(projects) -> str:
    if not projects:
        return "You are not a member of any Taiga project."
    lines = [f"- {p.get('name')} (ID: {p.get('id')}, Slug: {p.get('slug')})" for p in projects]
    return "Your Taiga Projects:\n\n" + "\n".join(lines)


def render_project(title: str, project: Dict[str, Any]) -> str:
    owner = project.get("owner")
    owner_name = owner.get("full_name_display") or owner.get("full_name") if isinstance(owner, dict) else owner
    return f"""{title}:

Name: {project.get('name')}
ID: {project.get('id')}
Slug: {project.get('slug')}
Description: {project.get('description') or 'No description'}
Created: {project.get('created_date')}
Modified: {project.get('modified_date')}
Owner: {owner_name or 'Unknown'}
Is Private: {yes_no(project.get('is_private'))}
Total Members: {project.get('total_memberships', len(project.get('members') or []))}
Total Milestones: {project.get('total_milestones') or 0}
Total Story Points: {project.get('total_story_points') or 0}"""


def render_project_summary(title: str, project: Dict[str, Any]) -> str:
    return f"""{title}

Name: {project.get('name')}
ID: {project.get('id')}
Slug: {project.get('slug')}
Description: {project.get('description') or 'No description'}
Private: {yes_no(project.get('is_private'))}"""


_SEARCH_SECTIONS = (
    ("userstories", "User Stories"),
    ("tasks", "Tasks"),
    ("issues", "Issues"),
    ("epics", "Epics"),
)


def render_search_results(search_text: str, results: Dict[str, Any]) -> str:
    sections = []
    for key, title in _SEARCH_SECTIONS:
        items = results.get(key) or []
        if items:
            lines = "\n".join(f"- #{i.get('ref')}: {i.get('subject')}" for i in items)
            sections.append(f"{title}:\n{lines}")
    pages = results.get("wikipages") or []
    if pages:
        sections.append("Wiki Pages:\n" + "\n".join(f"- {p.get('slug')}" for p in pages))
    if not sections:
        return f'No results found for "{search_text}".'
    return f'Search Results for "{search_text}":\n\n' + "\n\n".join(sections)


@mcp.tool("list_projects", description="Get a list of all projects the authenticated user is a member of.")
@tool_errors("list projects")
async def list_projects(ctx: Context) -> str:
    logger.info("Executing list_projects")
    session = get_session(ctx)
    user = await session.current_user()
    projects = await session.get("/projects", params={"member": user.get("id")}) or []
    logger.info(f"list_projects successful, found {len(projects)} projects.")
    return render_project_list(projects)


@mcp.tool("get_project", description="Get details of a specific project by ID or slug.")
@tool_errors("get project details")
async def get_project(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing get_project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    project = await session.get(f"/projects/{project_id}")
    return render_project("Project Details", project)


@mcp.tool("get_project_by_slug", description="Get project details by slug (useful when you only have the slug).")
@tool_errors("get project by slug")
async def get_project_by_slug(ctx: Context, slug: str) -> str:
    logger.info(f"Executing get_project_by_slug '{slug}'")
    project = await get_session(ctx).get("/projects/by_slug", params={"slug": slug})
    return render_project("Project Details (by slug)", project)


@mcp.tool("create_project", description="Create a new project with name and description.")
@tool_errors("create project")
async def create_project(ctx: Context, name: str, description: str,
                         is_private: bool = False) -> str:
    """Creates a new project. Requires name and description."""
    logger.info(f"Executing create_project '{name}'")
    if not name or not description:
        raise ValueError("Project name and description are required.")
    project = await get_session(ctx).post("/projects", json={
        "name": name,
        "description": description,
        "is_private": is_private,
    })
    logger.info(f"Project '{name}' created successfully (ID: {project.get('id', 'N/A')}).")
    return render_project_summary("Project created successfully!", project)


@mcp.tool("update_project", description="Update an existing project's name, description or privacy.")
@tool_errors("update project")
async def update_project(ctx: Context, project_identifier: str, name: Optional[str] = None,
                         description: Optional[str] = None,
                         is_private: Optional[bool] = None) -> str:
    logger.info(f"Executing update_project '{project_identifier}'")
    data: Dict[str, Any] = {}
    if name is not None:
        data["name"] = name
    if description is not None:
        data["description"] = description
    if is_private is not None:
        data["is_private"] = is_private
    if not data:
        raise ValueError("No fields to update were provided.")

    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    project = await session.patch(f"/projects/{project_id}", json=data)
    return render_project_summary("Project updated successfully!", project)


@mcp.tool("delete_project", description="Delete a project (IRREVERSIBLE). Requires confirm=true.")
@tool_errors("delete project")
async def delete_project(ctx: Context, project_identifier: str, confirm: bool) -> str:
    if not confirm:
        return "Project deletion cancelled. Please set 'confirm' to true to proceed with deletion."
    logger.warning(f"Executing delete_project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    await session.delete(f"/projects/{project_id}")
    logger.info(f"Project {project_id} deleted successfully.")
    return f"Project {project_identifier} has been permanently deleted."


@mcp.tool("get_project_stats", description="Get statistics for a specific project.")
@tool_errors("get project statistics")
async def get_project_stats(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing get_project_stats '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    stats = await session.get(f"/projects/{project_id}/stats") or {}
    return f"""Project Statistics:

Total Points: {stats.get('total_points') or 0}
Closed Points: {stats.get('closed_points') or 0}
Defined Points: {stats.get('defined_points') or 0}
Assigned Points: {stats.get('assigned_points') or 0}
Total Milestones: {stats.get('total_milestones') or 0}
Speed: {stats.get('speed') or 0}"""


@mcp.tool("search_project", description="Search user stories, tasks, issues, epics and wiki pages within a project.")
@tool_errors("search project")
async def search_project(ctx: Context, project_identifier: str, search_text: str) -> str:
    logger.info(f"Executing search_project '{project_identifier}' for '{search_text}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    results = await session.get("/search", params={"project": project_id, "text": search_text})
    return render_search_results(search_text, results or {})


@mcp.tool("export_project", description="Start an asynchronous export of a project's data.")
@tool_errors("export project")
async def export_project(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing export_project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    result = await session.post(f"/exporter/{project_id}") or {}
    return f"""Project export initiated:
Export ID: {result.get('export_id') or 'N/A'}
Status: {result.get('status') or 'Started'}

Use the export ID with get_export_status to check progress."""


@mcp.tool("get_export_status", description="Check the status of a project export.")
@tool_errors("get export status")
async def get_export_status(ctx: Context, export_id: str) -> str:
    logger.info(f"Executing get_export_status '{export_id}'")
    status = await get_session(ctx).get(f"/exporter/{export_id}") or {}
    lines = [
        "Export Status:",
        f"Export ID: {export_id}",
        f"Status: {status.get('status') or 'Unknown'}",
    ]
    if status.get("url"):
        lines.append(f"Download URL: {status['url']}")
    if status.get("error"):
        lines.append(f"Error: {status['error']}")
    return "\n".join(lines)


@mcp.tool("invite_project_user", description="Invite a user to a project by email with a specific role ID.")
@tool_errors("invite user to project")
async def invite_project_user(ctx: Context, project_identifier: str, email: str,
                              role_id: int) -> str:
    logger.info(f"Executing invite_project_user {email} to project '{project_identifier}' (role {role_id})")
    if not email:
        raise ValueError("Email cannot be empty.")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    invitation = await session.post("/memberships", json={
        "project": project_id,
        "role": role_id,
        "username": email,
    }) or {}
    return f"""User invitation sent:
Email: {email}
Project: {invitation.get('project_name') or project_id}
Role: {invitation.get('role_name') or role_id}
Status: Invitation sent"""
