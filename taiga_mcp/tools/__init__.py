"""Importing this package registers every Taiga tool on the shared FastMCP server."""
from taiga_mcp.tools import (  # noqa: F401
    auth,
    epics,
    issues,
    milestones,
    projects,
    roles,
    tasks,
    user_stories,
    users,
    wiki,
)
