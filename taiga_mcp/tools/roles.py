import logging
from typing import Optional

from mcp.server.fastmcp import Context

from taiga_mcp.formatting import yes_no
from taiga_mcp.resolver import resolve_project_id
from taiga_mcp.server import get_session, mcp, tool_errors

logger = logging.getLogger(__name__)


@mcp.tool("list_roles", description="List roles, optionally only those of one project (ID or slug).")
@tool_errors("list roles")
async def list_roles(ctx: Context, project_identifier: Optional[str] = None) -> str:
    logger.info(f"Executing list_roles for project '{project_identifier or '<all>'}'")
    session = get_session(ctx)
    if project_identifier:
        project_id = await resolve_project_id(session, project_identifier)
        roles = await session.get("/roles", params={"project": project_id}) or []
        lines = [
            f"- {r.get('name')} (ID: {r.get('id')}) - Permissions: {len(r.get('permissions') or [])} permissions"
            for r in roles
        ]
        return f"Roles for project {project_identifier}:\n\n" + "\n".join(lines)

    roles = await session.get("/roles") or []
    lines = []
    for r in roles:
        line = f"- {r.get('name')} (ID: {r.get('id')})"
        if r.get("project_name") or r.get("project"):
            line += f" - Project: {r.get('project_name') or r.get('project')}"
        lines.append(line)
    return "All available roles:\n\n" + "\n".join(lines)


@mcp.tool("get_role", description="Get details of a specific role by ID.")
@tool_errors("get role details")
async def get_role(ctx: Context, role_id: int) -> str:
    logger.info(f"Executing get_role ID {role_id}")
    role = await get_session(ctx).get(f"/roles/{role_id}")
    lines = [
        "Role Details:",
        f"Name: {role.get('name')}",
        f"ID: {role.get('id')}",
        f"Order: {role.get('order') if role.get('order') is not None else 'N/A'}",
        f"Computable: {yes_no(role.get('computable'))}",
    ]
    if role.get("project"):
        lines.append(f"Project: {role['project']}")
    permissions = role.get("permissions") or []
    if permissions:
        lines.append("Permissions:")
        lines.extend(f"- {p}" for p in permissions)
    return "\n".join(lines)
