import argparse
import logging

from taiga_mcp import resources, tools  # noqa: F401  (registers resources and tools)
from taiga_mcp.config import get_settings
from taiga_mcp.server import configure_logging, mcp

logger = logging.getLogger("taiga_mcp")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Taiga MCP bridge")
    parser.add_argument("--sse", action="store_true",
                        help="Use SSE transport mode (default is TAIGA_TRANSPORT, or stdio)")
    parser.add_argument("--host", type=str, default="127.0.0.1",
                        help="Host to bind to for HTTP server")
    parser.add_argument("--port", type=int, default=8000,
                        help="Port to bind to for HTTP server")
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    transport = "sse" if args.sse else settings.TRANSPORT_MODE
    if transport == "sse":
        mcp.settings.host = args.host
        mcp.settings.port = args.port
        logger.info(f"Starting Taiga MCP bridge (SSE) on {args.host}:{args.port}")
    else:
        logger.info("Starting Taiga MCP bridge (stdio)")
    mcp.run(transport=transport)


if __name__ == "__main__":
    main()
