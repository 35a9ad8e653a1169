import logging
from typing import Any, Dict, Optional

from mcp.server.fastmcp import Context

from taiga_mcp.formatting import completion_percentage, number, project_name, sum_points, titled_list
from taiga_mcp.resolver import resolve_project_id
from taiga_mcp.server import get_session, mcp, tool_errors

logger = logging.getLogger(__name__)


def _state(milestone: Dict[str, Any]) -> str:
    return "CLOSED" if milestone.get("closed") else "OPEN"


def render_progress(milestone: Dict[str, Any]) -> str:
    total = sum_points(milestone.get("total_points"))
    closed = sum_points(milestone.get("closed_points"))
    return f"""- Total Points: {number(total)}
- Closed Points: {number(closed)}
- Completion: {completion_percentage(closed, total)}%"""


def render_milestone(title: str, milestone: Dict[str, Any]) -> str:
    text = f"""{title}

{milestone.get('name')}
ID: {milestone.get('id')}
Project: {project_name(milestone)}
Status: {_state(milestone)}
Start Date: {milestone.get('estimated_start') or 'Not set'}
Finish Date: {milestone.get('estimated_finish') or 'Not set'}
Created: {milestone.get('created_date')}
Modified: {milestone.get('modified_date')}

Progress:
{render_progress(milestone)}
- User Stories: {len(milestone.get('user_stories') or [])}"""
    if milestone.get("disponibility"):
        text += f"\n\nDisponibility: {milestone['disponibility']}%"
    if milestone.get("slug"):
        text += f"\nSlug: {milestone['slug']}"
    return text


@mcp.tool("list_milestones", description="List all milestones (sprints) for a project, optionally only open (closed=false) or closed (closed=true) ones.")
@tool_errors("list milestones")
async def list_milestones(ctx: Context, project_identifier: str,
                          closed: Optional[bool] = None) -> str:
    logger.info(f"Executing list_milestones for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    milestones = await session.get("/milestones", params={"project": project_id}) or []
    if closed is not None:
        milestones = [m for m in milestones if bool(m.get("closed")) == closed]

    blocks = [
        f"""Milestone: {m.get('name')}
  - ID: {m.get('id')}
  - Status: {_state(m)}
  - Start: {m.get('estimated_start') or 'Not set'}
  - Finish: {m.get('estimated_finish') or 'Not set'}
  - User Stories: {len(m.get('user_stories') or [])}
  - Total Points: {number(sum_points(m.get('total_points')))}
  - Closed Points: {number(sum_points(m.get('closed_points')))}"""
        for m in milestones
    ]
    qualifier = "" if closed is None else f" ({'closed' if closed else 'open'})"
    return titled_list(f"Milestones for project {project_identifier}", blocks,
                       f"Total: {len(milestones)} milestone(s){qualifier}", sep="\n\n")


@mcp.tool("get_milestone", description="Get details of a specific milestone by ID.")
@tool_errors("get milestone")
async def get_milestone(ctx: Context, milestone_id: int) -> str:
    logger.info(f"Executing get_milestone ID {milestone_id}")
    milestone = await get_session(ctx).get(f"/milestones/{milestone_id}")
    return render_milestone("Milestone Details:", milestone)


@mcp.tool("create_milestone", description="Create a new milestone (sprint) in a project. Dates use YYYY-MM-DD.")
@tool_errors("create milestone")
async def create_milestone(ctx: Context, project_identifier: str, name: str,
                           estimated_start: str, estimated_finish: str,
                           disponibility: Optional[float] = None) -> str:
    logger.info(f"Executing create_milestone '{name}' in project '{project_identifier}'")
    if not name:
        raise ValueError("Milestone name cannot be empty.")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    data: Dict[str, Any] = {
        "project": project_id,
        "name": name,
        "estimated_start": estimated_start,
        "estimated_finish": estimated_finish,
    }
    if disponibility is not None:
        data["disponibility"] = disponibility

    milestone = await session.post("/milestones", json=data)
    logger.info(f"Milestone '{name}' created successfully (ID: {milestone.get('id', 'N/A')}).")
    return render_milestone("Milestone created successfully!", milestone)


@mcp.tool("update_milestone", description="Update an existing milestone's name, dates, disponibility or closed flag.")
@tool_errors("update milestone")
async def update_milestone(ctx: Context, milestone_id: int, name: Optional[str] = None,
                           estimated_start: Optional[str] = None,
                           estimated_finish: Optional[str] = None,
                           disponibility: Optional[float] = None,
                           closed: Optional[bool] = None) -> str:
    logger.info(f"Executing update_milestone ID {milestone_id}")
    data: Dict[str, Any] = {}
    if name:
        data["name"] = name
    if estimated_start:
        data["estimated_start"] = estimated_start
    if estimated_finish:
        data["estimated_finish"] = estimated_finish
    if disponibility is not None:
        data["disponibility"] = disponibility
    if closed is not None:
        data["closed"] = closed
    if not data:
        raise ValueError("No fields to update were provided.")

    milestone = await get_session(ctx).patch(f"/milestones/{milestone_id}", json=data)
    logger.info(f"Milestone {milestone_id} updated.")
    return render_milestone("Milestone updated successfully!", milestone)


@mcp.tool("delete_milestone", description="Delete a milestone by ID.")
@tool_errors("delete milestone")
async def delete_milestone(ctx: Context, milestone_id: int) -> str:
    logger.warning(f"Executing delete_milestone ID {milestone_id}")
    await get_session(ctx).delete(f"/milestones/{milestone_id}")
    logger.info(f"Milestone {milestone_id} deleted successfully.")
    return f"Milestone {milestone_id} deleted successfully."


@mcp.tool("close_milestone", description="Close a milestone (sprint) and report its final completion.")
@tool_errors("close milestone")
async def close_milestone(ctx: Context, milestone_id: int) -> str:
    logger.info(f"Executing close_milestone ID {milestone_id}")
    milestone = await get_session(ctx).patch(f"/milestones/{milestone_id}", json={"closed": True})
    return f"""Milestone closed successfully!

{milestone.get('name')}
Status: CLOSED
Final Stats:
{render_progress(milestone)}"""


@mcp.tool("reopen_milestone", description="Reopen a closed milestone.")
@tool_errors("reopen milestone")
async def reopen_milestone(ctx: Context, milestone_id: int) -> str:
    logger.info(f"Executing reopen_milestone ID {milestone_id}")
    milestone = await get_session(ctx).patch(f"/milestones/{milestone_id}", json={"closed": False})
    return f"""Milestone reopened successfully!

{milestone.get('name')}
Status: OPEN
Current Stats:
{render_progress(milestone)}"""


@mcp.tool("get_milestone_stats", description="Get point, user story and task statistics for a specific milestone.")
@tool_errors("get milestone statistics")
async def get_milestone_stats(ctx: Context, milestone_id: int) -> str:
    logger.info(f"Executing get_milestone_stats ID {milestone_id}")
    stats = await get_session(ctx).get(f"/milestones/{milestone_id}/stats") or {}
    total = sum_points(stats.get("total_points"))
    completed = sum_points(stats.get("completed_points"))
    return f"""Milestone Statistics:
Milestone ID: {milestone_id}
Total Points: {number(total)}
Completed Points: {number(completed)}
Total User Stories: {stats.get('total_userstories') or 0}
Completed User Stories: {stats.get('completed_userstories') or 0}
Total Tasks: {stats.get('total_tasks') or 0}
Completed Tasks: {stats.get('completed_tasks') or 0}
Progress: {number(completed)}/{number(total)} points ({completion_percentage(completed, total)}%)"""
