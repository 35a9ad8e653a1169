import logging
import time
from typing import Optional

from mcp.server.fastmcp import Context

from taiga_mcp.server import get_session, mcp, tool_errors
from taiga_mcp.tools.users import render_user

logger = logging.getLogger(__name__)


@mcp.tool("authenticate", description="Authenticate with the Taiga API using username and password. Falls back to the configured credentials when none are given, and replaces any cached token.")
@tool_errors("authenticate")
async def authenticate(ctx: Context, username: Optional[str] = None,
                       password: Optional[str] = None) -> str:
    """Forces a fresh login and caches the new token."""
    logger.info(f"Executing authenticate for user '{username or '<configured>'}'")
    session = get_session(ctx)
    user = await session.authenticate(username=username, password=password)
    full_name = user.get("full_name") or user.get("full_name_display") or user.get("username")
    return f"Successfully authenticated as {full_name} ({user.get('username')})."


@mcp.tool("get_current_user", description="Get details of the currently authenticated user.")
@tool_errors("get current user")
async def get_current_user(ctx: Context) -> str:
    logger.info("Executing get_current_user")
    user = await get_session(ctx).get("/users/me")
    return render_user("Current User", user)


@mcp.tool("session_status", description="Check whether a Taiga token is cached, which account it belongs to, and when it expires under the configured token lifetime.")
@tool_errors("check session status")
async def session_status(ctx: Context) -> str:
    """Reports the cached session state without contacting Taiga."""
    logger.debug("Executing session_status")
    session = get_session(ctx)
    if session.auth_token is None:
        return (f"Not authenticated with {session.api_url}. "
                "The next Taiga call will log in with the configured credentials.")
    if session.token_expired:
        return (f"Session for {session.user.get('username')} has expired. "
                "The next Taiga call will log in again.")

    age = int(time.time() - session.authenticated_at)
    lines = [
        "Session Status: active",
        f"API: {session.api_url}",
        f"User: {session.user.get('full_name') or 'Not set'} ({session.user.get('username')})",
        f"Authenticated: {age} seconds ago",
    ]
    if session.expires_at is None:
        lines.append("Expires: never (token is kept until invalidated)")
    else:
        lines.append(f"Expires in: {int(session.expires_at - time.time())} seconds")
    return "\n".join(lines)


@mcp.tool("logout", description="Discard the cached Taiga token. The next call logs in again.")
@tool_errors("log out")
async def logout(ctx: Context) -> str:
    logger.info("Executing logout")
    session = get_session(ctx)
    if session.auth_token is None:
        return "No active Taiga session."
    username = (session.user or {}).get("username")
    session.invalidate()
    return f"Logged out {username}. The cached token was discarded."
