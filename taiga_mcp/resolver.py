"""
Turns human friendly identifiers into the numeric IDs the Taiga API expects.

Numeric identifiers are trusted as-is and never looked up; the API rejects
unknown IDs on its own. Everything else costs one lookup request, and a
lookup that matches nothing raises ResolutionError before the caller issues
its real request.
"""
import logging
from typing import Union

from taiga_mcp.exceptions import ResolutionError, TaigaAPIError
from taiga_mcp.taiga_client import TaigaSession

logger = logging.getLogger(__name__)

Identifier = Union[str, int]


def is_numeric(identifier: Identifier) -> bool:
    if isinstance(identifier, bool):
        return False
    if isinstance(identifier, int):
        return True
    return str(identifier).strip().isdigit()


async def resolve_project_id(session: TaigaSession, identifier: Identifier) -> int:
    """Resolves a project ID or slug to the project's numeric ID."""
    if is_numeric(identifier):
        return int(identifier)

    slug = str(identifier).strip()
    if not slug:
        raise ValueError("Project identifier cannot be empty.")
    logger.debug(f"Resolving project slug '{slug}'")
    try:
        project = await session.get("/projects/by_slug", params={"slug": slug})
    except TaigaAPIError as e:
        if e.status_code == 404:
            raise ResolutionError(f"Project with slug '{slug}' not found") from e
        raise
    if not project or "id" not in project:
        raise ResolutionError(f"Project with slug '{slug}' not found")
    return int(project["id"])


async def resolve_reference(session: TaigaSession, collection: str, project_id: int,
                            identifier: Identifier, label: str) -> int:
    """
    Resolves an entity ID or a "#<ref>" reference number within a project.

    `collection` is the API collection to search ("userstories", "tasks",
    ...). References are matched by listing the project's entities and
    comparing their `ref` field.
    """
    text = str(identifier).strip()
    if not text.startswith("#"):
        if is_numeric(text):
            return int(text)
        raise ValueError(
            f"Invalid {label} identifier '{identifier}': use a numeric ID or a #reference.")

    ref = text[1:].strip()
    if not ref.isdigit():
        raise ValueError(f"Invalid {label} reference '{identifier}'.")

    logger.debug(f"Resolving {label} reference #{ref} in project {project_id}")
    items = await session.get(f"/{collection}", params={"project": project_id})
    for item in items or []:
        if str(item.get("ref")) == ref:
            return int(item["id"])
    raise ResolutionError(f"{label.capitalize()} with reference #{ref} not found")


async def resolve_named_id(session: TaigaSession, collection: str, project_id: int,
                           value: Identifier, label: str) -> int:
    """
    Resolves a status, priority, severity or type given by name (or ID).

    Names match case-insensitively and exactly; there is no fuzzy matching.
    """
    if is_numeric(value):
        return int(value)

    name = str(value).strip()
    options = await session.get(f"/{collection}", params={"project": project_id}) or []
    for option in options:
        if str(option.get("name", "")).lower() == name.lower():
            return int(option["id"])
    available = ", ".join(str(o.get("name")) for o in options) or "none"
    raise ResolutionError(f"{label.capitalize()} \"{name}\" not found (available: {available})")
