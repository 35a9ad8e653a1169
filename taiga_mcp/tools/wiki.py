import logging
from typing import Any, Dict, Optional

from mcp.server.fastmcp import Context

from taiga_mcp.formatting import project_name, truncate
from taiga_mcp.resolver import resolve_project_id
from taiga_mcp.server import get_session, mcp, tool_errors

logger = logging.getLogger(__name__)


def render_wiki_page(page: Dict[str, Any]) -> str:
    owner = page.get("owner_extra_info") or {}
    return f"""Wiki Page Details:
ID: {page.get('id')}
Title: {page.get('slug')}
Project: {project_name(page)}
Owner: {owner.get('full_name_display') or owner.get('full_name') or page.get('owner')}
Created: {page.get('created_date')}
Modified: {page.get('modified_date')}
Content:
{page.get('content') or 'No content'}"""


def render_wiki_change(title: str, page: Dict[str, Any]) -> str:
    return f"""{title}
Page ID: {page.get('id')}
Slug: {page.get('slug')}
Project: {project_name(page)}
Modified: {page.get('modified_date')}
Content preview:
{truncate(page.get('content'), 200)}"""


@mcp.tool("list_wiki_pages", description="List all wiki pages for a specific project.")
@tool_errors("list wiki pages")
async def list_wiki_pages(ctx: Context, project_identifier: str) -> str:
    logger.info(f"Executing list_wiki_pages for project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    pages = await session.get("/wiki", params={"project": project_id}) or []
    if not pages:
        return "No wiki pages found in this project."
    lines = [
        f"- {p.get('slug')} (ID: {p.get('id')}): {truncate(p.get('content'), 100) or 'No content'}"
        for p in pages
    ]
    return "Wiki Pages in Project:\n" + "\n".join(lines)


@mcp.tool("get_wiki_page", description="Get a specific wiki page by its ID.")
@tool_errors("get wiki page")
async def get_wiki_page(ctx: Context, wiki_page_id: int) -> str:
    logger.info(f"Executing get_wiki_page ID {wiki_page_id}")
    page = await get_session(ctx).get(f"/wiki/{wiki_page_id}")
    return render_wiki_page(page)


@mcp.tool("get_wiki_page_by_slug", description="Get a specific wiki page by its slug within a project.")
@tool_errors("get wiki page by slug")
async def get_wiki_page_by_slug(ctx: Context, project_identifier: str, slug: str) -> str:
    logger.info(f"Executing get_wiki_page_by_slug '{slug}' in project '{project_identifier}'")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    page = await session.get("/wiki/by_slug", params={"slug": slug, "project": project_id})
    return render_wiki_page(page)


@mcp.tool("create_wiki_page", description="Create a new wiki page in a project. Content is markdown.")
@tool_errors("create wiki page")
async def create_wiki_page(ctx: Context, project_identifier: str, slug: str, content: str) -> str:
    logger.info(f"Executing create_wiki_page '{slug}' in project '{project_identifier}'")
    if not slug:
        raise ValueError("Wiki page slug cannot be empty.")
    session = get_session(ctx)
    project_id = await resolve_project_id(session, project_identifier)
    page = await session.post("/wiki", json={"project": project_id, "slug": slug, "content": content})
    logger.info(f"Wiki page '{slug}' created successfully (ID: {page.get('id', 'N/A')}).")
    return render_wiki_change("Wiki page created successfully!", page)


@mcp.tool("update_wiki_page", description="Update an existing wiki page's slug and/or markdown content.")
@tool_errors("update wiki page")
async def update_wiki_page(ctx: Context, wiki_page_id: int, slug: Optional[str] = None,
                           content: Optional[str] = None) -> str:
    logger.info(f"Executing update_wiki_page ID {wiki_page_id}")
    data: Dict[str, Any] = {}
    if slug:
        data["slug"] = slug
    if content is not None:
        data["content"] = content
    if not data:
        raise ValueError("No updates provided. Please specify slug or content to update.")
    page = await get_session(ctx).patch_versioned(f"/wiki/{wiki_page_id}", data)
    return render_wiki_change("Wiki page updated successfully!", page)


@mcp.tool("delete_wiki_page", description="Delete a wiki page by ID.")
@tool_errors("delete wiki page")
async def delete_wiki_page(ctx: Context, wiki_page_id: int) -> str:
    logger.warning(f"Executing delete_wiki_page ID {wiki_page_id}")
    await get_session(ctx).delete(f"/wiki/{wiki_page_id}")
    logger.info(f"Wiki page {wiki_page_id} deleted successfully.")
    return f"Wiki page {wiki_page_id} deleted successfully."
