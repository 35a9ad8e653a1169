import logging
from typing import Any, Dict

from mcp.server.fastmcp import Context

from taiga_mcp.resolver import resolve_project_id
from taiga_mcp.server import get_session, mcp, tool_errors

logger = logging.getLogger(__name__)


def render_user(title: str, user: Dict[str, Any]) -> str:
    return f"""{title}:
ID: {user.get('id')}
Username: {user.get('username')}
Full Name: {user.get('full_name') or 'Not set'}
Email: {user.get('email') or 'Not set'}
Bio: {user.get('bio') or 'No bio'}
Date Joined: {user.get('date_joined')}
Is Active: {'Yes' if user.get('is_active') else 'No'}
Language: {user.get('lang') or 'Not set'}
Timezone: {user.get('timezone') or 'Not set'}"""


@mcp.tool("list_users", description="Get a list of all users in the Taiga instance.")
@tool_errors("list users")
async def list_users(ctx: Context) -> str:
    logger.info("Executing list_users")
    users = await get_session(ctx).get("/users") or []
    lines = [
        f"- {u.get('full_name') or u.get('username')} (ID: {u.get('id')}, Email: {u.get('email') or 'N/A'})"
        for u in users
    ]
    return "Users in Taiga:\n" + "\n".join(lines) + f"\n\nTotal: {len(users)} users"


@mcp.tool("get_user", description="Get details of a specific user by ID.")
@tool_errors("get user")
async def get_user(ctx: Context, user_id: int) -> str:
    logger.info(f"Executing get_user ID {user_id}")
    user = await get_session(ctx).get(f"/users/{user_id}")
    return render_user("User Details", user)


@mcp.tool("get_project_members", description="List all members of a specific project, identified by project ID or slug.")
@tool_errors("get project members")
async def get_project_members(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing get_project_members for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    members = await session.get("/memberships", params={"project": project_id}) or []
    if not members:
        return "No members found in this project."
    lines = [
        f"- {m.get('full_name_display') or m.get('full_name')} ({m.get('username') or m.get('email')}) - Role: {m.get('role_name')}"
        for m in members
    ]
    return "Project Members:\n\n" + "\n".join(lines)
