"""Small helpers shared by the text renderers of the tool modules."""
import math
from typing import Any, Dict, Iterable, List, Optional


def yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def extra_name(item: Dict[str, Any], field: str, default: str = "N/A") -> str:
    """Reads `<field>_extra_info.name`, the display name Taiga embeds next to foreign keys."""
    info = item.get(f"{field}_extra_info") or {}
    return info.get("name") or default


def assignee(item: Dict[str, Any], default: str = "Unassigned") -> str:
    info = item.get("assigned_to_extra_info") or {}
    return info.get("full_name_display") or info.get("full_name") or default


def project_name(item: Dict[str, Any]) -> str:
    info = item.get("project_extra_info") or {}
    return str(info.get("name") or item.get("project") or "Unknown")


def tags_text(tags: Optional[Iterable[Any]], default: str = "None") -> str:
    """Tags come either as plain strings or as [name, color] pairs."""
    names = []
    for tag in tags or []:
        if isinstance(tag, (list, tuple)):
            tag = tag[0] if tag else ""
        if tag:
            names.append(str(tag))
    return ", ".join(names) or default


def truncate(text: Optional[str], limit: int) -> str:
    text = text or ""
    return text[:limit] + "..." if len(text) > limit else text


def sum_points(value: Any) -> float:
    """
    Collapses a points value to a single number.

    Milestone stats report points per role (a mapping) or per entry (a list);
    milestone and project payloads report a plain number.
    """
    if value is None:
        return 0
    if isinstance(value, dict):
        return sum(sum_points(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return sum(sum_points(v) for v in value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def number(value: float) -> str:
    """Renders 12.0 as "12" and 12.5 as "12.5"."""
    return str(int(value)) if float(value).is_integer() else str(value)


def completion_percentage(closed_points: Any, total_points: Any) -> int:
    """round(closed / total * 100) with halves rounded up; 0 when there are no points."""
    total = sum_points(total_points)
    if not total:
        return 0
    closed = sum_points(closed_points)
    return int(math.floor(closed / total * 100 + 0.5))


def titled_list(title: str, lines: List[str], footer: str, sep: str = "\n") -> str:
    """Title line, then the lines joined by `sep`, then the footer, separated by blank lines."""
    parts = [f"{title}:"]
    if lines:
        parts.append(sep.join(lines))
    parts.append(footer)
    return "\n\n".join(parts)


def render_statuses(title: str, statuses) -> str:
    lines = [
        f"- {s.get('name')} (ID: {s.get('id')}){' [Closed]' if s.get('is_closed') else ''}"
        for s in statuses
    ]
    return titled_list(title, lines, f"Total: {len(statuses)} status(es)")
