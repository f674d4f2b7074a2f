"""news_brief - MCP Server with Decorators

This module implements the MCP server exposing the pipeline tools using FastMCP
with multi-transport support (STDIO, SSE, and Streamable HTTP), automatic
application of decorators (exception handling, logging), and the periodic
discovery schedule.
"""

import asyncio
import os
import sys
from typing import Optional

import click
from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from news_brief.config import ServerConfig, get_config, load_config, set_config
from news_brief.log_system.correlation import (
    generate_correlation_id,
    set_initialization_correlation_id,
    clear_initialization_correlation_id
)
from news_brief.log_system.unified_logger import UnifiedLogger
from news_brief.pipeline import Pipeline, get_pipeline
from news_brief.scheduler import run_periodic_discovery
from news_brief.storage.database import close_database

from news_brief.tools.pipeline_tools import pipeline_tools


def create_mcp_server(config: Optional[ServerConfig] = None) -> FastMCP:
    """Create and configure the MCP server with decorators.

    Args:
        config: Optional server configuration

    Returns:
        Configured FastMCP server instance
    """
    if config is None:
        config = get_config()

    # Set startup correlation ID BEFORE initializing logging
    startup_correlation_id = "startup_" + generate_correlation_id().split('_')[1]
    set_initialization_correlation_id(startup_correlation_id)

    UnifiedLogger.initialize(config)
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"Server config: {config.name} at log level {config.log_level}")

    # Configure DNS rebinding protection (disabled by default for development)
    dns_protection = os.getenv("MCP_DNS_REBINDING_PROTECTION", "false").lower() == "true"
    allowed_hosts_env = os.getenv("MCP_ALLOWED_HOSTS", "")
    allowed_hosts = [h.strip() for h in allowed_hosts_env.split(",") if h.strip()] if allowed_hosts_env else []

    logger.info(f"DNS rebinding protection: {'enabled' if dns_protection else 'disabled'}")
    if dns_protection and allowed_hosts:
        logger.info(f"Allowed hosts: {allowed_hosts}")

    mcp_server = FastMCP(
        config.name or "news_brief",
        transport_security=TransportSecuritySettings(
            enable_dns_rebinding_protection=dns_protection,
            allowed_hosts=allowed_hosts
        )
    )

    # Register all tools with the server
    register_tools(mcp_server, config)

    # Clear initialization correlation ID after initialization
    logger.info("Server initialization complete")
    clear_initialization_correlation_id()

    return mcp_server


def register_tools(mcp_server: FastMCP, config: ServerConfig) -> None:
    """Register all MCP tools with the server using decorators.

    Registers decorated functions directly with MCP to preserve function signatures
    for proper parameter introspection.
    """
    logger = UnifiedLogger.get_logger(__name__)

    from news_brief.decorators.exception_handler import exception_handler
    from news_brief.decorators.tool_logger import tool_logger

    for tool_func in pipeline_tools:
        # Apply decorator chain: exception_handler → tool_logger
        decorated_func = exception_handler(tool_logger(tool_func, config.__dict__))

        tool_name = tool_func.__name__

        # Register directly with MCP
        mcp_server.tool(
            name=tool_name
        )(decorated_func)

        logger.info(f"Registered pipeline tool: {tool_name}")

    logger.info(f"Server '{mcp_server.name}' initialized with decorators")


async def shutdown(pipeline: Pipeline, schedule_task: Optional[asyncio.Task] = None) -> None:
    """Stop the schedule and every running instance, then close the database.

    Instances are awaited before the connection closes so none of them fails
    mid-step; interrupted instances resume on the next start.
    """
    logger = UnifiedLogger.get_logger(__name__)

    if schedule_task is not None:
        schedule_task.cancel()
        try:
            await schedule_task
        except asyncio.CancelledError:
            pass

    await pipeline.cancel()
    await close_database()
    logger.info("Shutdown complete")


@click.command()
@click.option(
    "--port",
    default=3001,
    help="Port to listen on for SSE or Streamable HTTP transport"
)
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (use 0.0.0.0 for Docker)"
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="Transport type (stdio, sse, or streamable-http)"
)
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML configuration file"
)
@click.option(
    "--schedule/--no-schedule",
    default=True,
    help="Trigger discovery periodically (interval from discovery_interval_hours)"
)
def main(port: int, host: str, transport: str, config_path: Optional[str] = None, schedule: bool = True) -> int:
    """Run the news_brief server with specified transport."""
    config = load_config(config_path)
    set_config(config)
    server = create_mcp_server(config)
    logger = UnifiedLogger.get_logger(__name__)

    async def run_server():
        """Inner async function to run the server and manage the event loop."""
        pipeline = await get_pipeline()
        await pipeline.resume_pending()

        schedule_task = None
        if schedule and config.discovery_interval_hours > 0:
            schedule_task = asyncio.create_task(
                run_periodic_discovery(config.discovery_interval_hours * 3600)
            )

        try:
            if transport == "stdio":
                logger.info("Starting server with STDIO transport")
                await server.run_stdio_async()
            elif transport == "sse":
                logger.info(f"Starting server with SSE transport on {host}:{port}")
                server.settings.host = host
                server.settings.port = port
                await server.run_sse_async()
            elif transport == "streamable-http":
                logger.info(f"Starting server with Streamable HTTP transport on {host}:{port}")
                server.settings.host = host
                server.settings.port = port
                server.settings.streamable_http_path = "/mcp"
                await server.run_streamable_http_async()
            else:
                raise ValueError(f"Unknown transport: {transport}")
        finally:
            await shutdown(pipeline, schedule_task)

    try:
        asyncio.run(run_server())
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        return 1
    finally:
        UnifiedLogger.close()


def main_stdio() -> int:
    """Entry point for STDIO transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="stdio")


def main_http() -> int:
    """Entry point for Streamable HTTP transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="streamable-http")


if __name__ == "__main__":
    sys.exit(main())
