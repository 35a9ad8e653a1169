# server.py
import functools
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from taiga_mcp.config import Settings, get_settings
from taiga_mcp.exceptions import TaigaError
from taiga_mcp.taiga_client import TaigaSession

logger = logging.getLogger(__name__)


# --- Logging Setup ---

def configure_logging(settings: Settings) -> None:
    """Logs to stderr (stdout carries the stdio transport) and optionally to a file."""
    handlers = [logging.StreamHandler()]  # Log to stderr by default
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE))
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )
    # Quiet down HTTP library logging, it would echo every request line
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# --- Session Ownership ---

@dataclass
class AppContext:
    """State owned by the running server and shared by every tool call."""
    session: TaigaSession
    settings: Optional[Settings] = None


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Creates the Taiga session when the server starts and closes it on shutdown."""
    settings = get_settings()
    session = TaigaSession.from_settings(settings)
    logger.info(f"Taiga MCP bridge starting, API at {settings.TAIGA_API_URL}")
    try:
        yield AppContext(session=session, settings=settings)
    finally:
        await session.aclose()
        logger.info("Taiga session closed.")


# --- MCP Server Definition ---
mcp = FastMCP("Taiga Bridge", lifespan=app_lifespan)


def get_session(ctx: Context) -> TaigaSession:
    """Retrieves the server's TaigaSession from the request context."""
    return ctx.request_context.lifespan_context.session


def tool_errors(action: str):
    """
    Reports every failure of the wrapped tool the same way.

    Taiga and validation errors are logged without a traceback, anything else
    with one; both are raised as ToolError("Failed to <action>: <reason>"),
    which FastMCP returns to the client as an error result.
    """
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except (TaigaError, ValueError) as e:
                logger.error(f"Failed to {action}: {e}", exc_info=False)
                raise ToolError(f"Failed to {action}: {e}") from e
            except Exception as e:
                logger.error(f"Unexpected error while trying to {action}: {e}", exc_info=True)
                raise ToolError(f"Failed to {action}: {e}") from e
        return wrapper
    return decorator
