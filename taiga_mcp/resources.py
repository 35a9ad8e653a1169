import logging

from taiga_mcp.config import get_settings
from taiga_mcp.server import get_session, mcp
from taiga_mcp.tools.projects import render_project_list

logger = logging.getLogger(__name__)

API_OVERVIEW = """Taiga API Documentation

This MCP server provides access to the Taiga project management platform.
You can perform the following operations:

PROJECT MANAGEMENT:
- List, get, create, update, delete projects
- Get project statistics and search within projects
- Export project data and check export status
- Invite users to projects

USER STORY MANAGEMENT:
- List, get (by ID or reference), create, update, delete user stories
- Assign/unassign user stories to users
- Get user story statuses

TASK MANAGEMENT:
- List, get, create, update, delete tasks
- Assign/unassign tasks to users
- Get task statuses

ISSUE MANAGEMENT:
- List, get, create, update, delete issues
- Assign/unassign issues to users
- Get issue statuses, priorities, severities, and types

EPIC MANAGEMENT:
- List, get, create, update, delete epics
- Assign/unassign epics, link user stories to epics
- Get epic statuses

MILESTONE/SPRINT MANAGEMENT:
- List, get, create, update, delete, close and reopen milestones
- Get milestone statistics

USER AND ROLE MANAGEMENT:
- List users, get user details, get current user
- Get project members, list and inspect roles

WIKI MANAGEMENT:
- List, get (by ID or slug), create, update, delete wiki pages

AUTHENTICATION:
- Authenticate with Taiga credentials, check the session, log out

The server connects to the Taiga API at {api_url}.

All tools accept either project IDs or project slugs for identification.
User stories can be referenced as "#<ref>" where a reference is accepted.
Status, priority, severity and type names are resolved to IDs automatically.
"""


@mcp.resource("docs://taiga/api", name="taiga-api-docs",
              description="Overview of the Taiga operations this server exposes.")
def api_docs() -> str:
    return API_OVERVIEW.format(api_url=get_settings().TAIGA_API_URL)


@mcp.resource("taiga://projects", name="projects",
              description="Projects the authenticated Taiga user is a member of.")
async def projects_resource() -> str:
    session = get_session(mcp.get_context())
    user = await session.current_user()
    projects = await session.get("/projects", params={"member": user.get("id")}) or []
    logger.debug(f"projects resource read, {len(projects)} projects")
    return render_project_list(projects)
