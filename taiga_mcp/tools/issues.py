import logging
from typing import Any, Dict, Optional

from mcp.server.fastmcp import Context

from taiga_mcp.formatting import (
    assignee,
    extra_name,
    project_name,
    render_statuses,
    tags_text,
    titled_list,
    truncate,
)
from taiga_mcp.resolver import resolve_named_id, resolve_project_id
from taiga_mcp.server import get_session, mcp, tool_errors
from taiga_mcp.taiga_client import TaigaSession

logger = logging.getLogger(__name__)

# Issue attributes that are chosen by name from per-project lookup collections
_ATTRIBUTES = (
    ("status", "issue-statuses", "status"),
    ("priority", "priorities", "priority"),
    ("severity", "severities", "severity"),
    ("type", "issue-types", "issue type"),
)


async def _resolve_attributes(session: TaigaSession, project_id: int,
                              values: Dict[str, Optional[str]]) -> Dict[str, int]:
    resolved = {}
    for field, collection, label in _ATTRIBUTES:
        value = values.get(field)
        if value:
            resolved[field] = await resolve_named_id(session, collection, project_id, value, label)
    return resolved


def render_issue_header(issue: Dict[str, Any]) -> str:
    return f"""Issue #{issue.get('ref')}: {issue.get('subject')}
Project: {project_name(issue)}
Status: {extra_name(issue, 'status')}
Priority: {extra_name(issue, 'priority')}
Severity: {extra_name(issue, 'severity')}
Type: {extra_name(issue, 'type')}
Assigned to: {assignee(issue)}"""


def render_ordered_values(title: str, values) -> str:
    lines = [f"- {v.get('name')} (ID: {v.get('id')}) - Order: {v.get('order')}" for v in values]
    return titled_list(title, lines, f"Total: {len(values)}")


@mcp.tool("list_issues", description="List issues for a project, optionally filtered by status, priority, severity or type name and assigned user ID.")
@tool_errors("list issues")
async def list_issues(ctx: Context, project_identifier: str, status: Optional[str] = None,
                      assigned_to: Optional[int] = None, priority: Optional[str] = None,
                      severity: Optional[str] = None, issue_type: Optional[str] = None) -> str:
    logger.info(f"Executing list_issues for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    params: Dict[str, Any] = {"project": project_id, "assigned_to": assigned_to}
    params.update(await _resolve_attributes(session, project_id, {
        "status": status, "priority": priority, "severity": severity, "type": issue_type,
    }))

    issues = await session.get("/issues", params=params) or []
    if not issues:
        return f"No issues found in project {project_identifier}."
    blocks = []
    for issue in issues:
        block = f"""Issue #{issue.get('ref')}: {issue.get('subject')} (ID: {issue.get('id')})
  - Status: {extra_name(issue, 'status')}
  - Priority: {extra_name(issue, 'priority')}
  - Severity: {extra_name(issue, 'severity')}
  - Type: {extra_name(issue, 'type')}
  - Assigned to: {assignee(issue)}
  - Created: {issue.get('created_date')}"""
        if issue.get("description"):
            block += f"\n  - Description: {truncate(issue['description'], 100)}"
        blocks.append(block)
    return (f"Issues for project {project_identifier}:\n\n" + "\n\n".join(blocks)
            + f"\n\nTotal: {len(issues)} issue(s)")


@mcp.tool("get_issue", description="Get details of a specific issue by ID.")
@tool_errors("get issue")
async def get_issue(ctx: Context, issue_id: int) -> str:
    logger.info(f"Executing get_issue ID {issue_id}")
    issue = await get_session(ctx).get(f"/issues/{issue_id}")
    return f"""Issue Details:

ID: {issue.get('id')}
{render_issue_header(issue)}
Created: {issue.get('created_date')}
Modified: {issue.get('modified_date')}
Due Date: {issue.get('due_date') or 'No due date'}

Description: {issue.get('description') or 'No description'}

Tags: {tags_text(issue.get('tags'))}
Watchers: {len(issue.get('watchers') or [])}"""


@mcp.tool("create_issue", description="Create a new issue in a project. Priority, severity and type are given by name (or ID).")
@tool_errors("create issue")
async def create_issue(ctx: Context, project_identifier: str, subject: str, priority: str,
                       severity: str, issue_type: str, description: Optional[str] = None,
                       assigned_to: Optional[int] = None, due_date: Optional[str] = None) -> str:
    logger.info(f"Executing create_issue '{subject}' in project '{project_identifier}'")
    if not subject:
        raise ValueError("Issue subject cannot be empty.")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)

    data: Dict[str, Any] = {"project": project_id, "subject": subject}
    data.update(await _resolve_attributes(session, project_id, {
        "priority": priority, "severity": severity, "type": issue_type,
    }))
    if description:
        data["description"] = description
    if assigned_to is not None:
        data["assigned_to"] = assigned_to
    if due_date:
        data["due_date"] = due_date

    issue = await session.post("/issues", json=data)
    logger.info(f"Issue '{subject}' created successfully (ID: {issue.get('id', 'N/A')}).")
    return f"""Issue created successfully!

ID: {issue.get('id')}
{render_issue_header(issue)}
Created: {issue.get('created_date')}
Due Date: {issue.get('due_date') or 'No due date'}"""


@mcp.tool("update_issue", description="Update an existing issue. Status, priority, severity and type are given by name (or ID).")
@tool_errors("update issue")
async def update_issue(ctx: Context, issue_id: int, subject: Optional[str] = None,
                       description: Optional[str] = None, status_name: Optional[str] = None,
                       priority: Optional[str] = None, severity: Optional[str] = None,
                       issue_type: Optional[str] = None, assigned_to: Optional[int] = None,
                       due_date: Optional[str] = None) -> str:
    logger.info(f"Executing update_issue ID {issue_id}")
    data: Dict[str, Any] = {}
    if subject is not None:
        data["subject"] = subject
    if description is not None:
        data["description"] = description
    if assigned_to is not None:
        data["assigned_to"] = assigned_to
    if due_date is not None:
        data["due_date"] = due_date
    named = {"status": status_name, "priority": priority, "severity": severity, "type": issue_type}
    if not data and not any(named.values()):
        raise ValueError("No fields to update were provided.")

    session = get_session(ctx)
    current = await session.get(f"/issues/{issue_id}")
    if any(named.values()):
        data.update(await _resolve_attributes(session, current["project"], named))

    issue = await session.patch_versioned(f"/issues/{issue_id}", data, current)
    logger.info(f"Issue {issue_id} updated.")
    return f"""Issue updated successfully!

{render_issue_header(issue)}
Modified: {issue.get('modified_date')}"""


@mcp.tool("delete_issue", description="Delete an issue by ID.")
@tool_errors("delete issue")
async def delete_issue(ctx: Context, issue_id: int) -> str:
    logger.warning(f"Executing delete_issue ID {issue_id}")
    await get_session(ctx).delete(f"/issues/{issue_id}")
    logger.info(f"Issue {issue_id} deleted successfully.")
    return f"Issue {issue_id} deleted successfully."


@mcp.tool("assign_issue", description="Assign an issue to a user.")
@tool_errors("assign issue")
async def assign_issue(ctx: Context, issue_id: int, user_id: int) -> str:
    logger.info(f"Executing assign_issue: Issue {issue_id} -> User {user_id}")
    issue = await get_session(ctx).patch_versioned(f"/issues/{issue_id}", {"assigned_to": user_id})
    return f"""Issue assigned successfully!

Issue #{issue.get('ref')}: {issue.get('subject')}
Assigned to: {assignee(issue, str(user_id))}"""


@mcp.tool("unassign_issue", description="Unassign an issue from its current user.")
@tool_errors("unassign issue")
async def unassign_issue(ctx: Context, issue_id: int) -> str:
    logger.info(f"Executing unassign_issue: Issue {issue_id}")
    issue = await get_session(ctx).patch_versioned(f"/issues/{issue_id}", {"assigned_to": None})
    return f"""Issue unassigned successfully!

Issue #{issue.get('ref')}: {issue.get('subject')}
Status: Unassigned"""


@mcp.tool("get_issue_statuses", description="Get all available issue statuses for a project.")
@tool_errors("get issue statuses")
async def get_issue_statuses(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing get_issue_statuses for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    statuses = await session.get("/issue-statuses", params={"project": project_id}) or []
    return render_statuses(f"Issue Statuses for project {project_identifier}", statuses)


@mcp.tool("get_issue_priorities", description="Get all available issue priorities for a project.")
@tool_errors("get issue priorities")
async def get_issue_priorities(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing get_issue_priorities for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    priorities = await session.get("/priorities", params={"project": project_id}) or []
    return render_ordered_values(f"Issue Priorities for project {project_identifier}", priorities)


@mcp.tool("get_issue_severities", description="Get all available issue severities for a project.")
@tool_errors("get issue severities")
async def get_issue_severities(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing get_issue_severities for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    severities = await session.get("/severities", params={"project": project_id}) or []
    return render_ordered_values(f"Issue Severities for project {project_identifier}", severities)


@mcp.tool("get_issue_types", description="Get all available issue types for a project.")
@tool_errors("get issue types")
async def get_issue_types(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing get_issue_types for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    types = await session.get("/issue-types", params={"project": project_id}) or []
    return render_ordered_values(f"Issue Types for project {project_identifier}", types)
