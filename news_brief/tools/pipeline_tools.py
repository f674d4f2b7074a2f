"""Pipeline MCP tools.

This module provides MCP tools for triggering the discovery and delivery
workflows by hand and for checking on their instances.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and False for optional flags.
"""

from typing import Any, Dict
from mcp.server.fastmcp import Context

from news_brief.log_system.unified_logger import UnifiedLogger
from news_brief.models.schemas import Article, DeliveryUnit, utc_now
from news_brief.pipeline import DELIVERY, DISCOVERY, get_pipeline


async def trigger_discovery(
    main_url: str = "",
    feed_url: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Start a discovery run that finds new articles and queues their delivery.

    The run fetches the listing page and the RSS feed, skips articles delivered
    in the last 24 hours, and starts one delivery workflow per new article.

    Args:
        main_url: Listing page to scan (empty string uses the configured default)
        feed_url: RSS feed with article metadata (empty string uses the configured default)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - workflow_id: id of the discovery instance
        - message: confirmation string
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"trigger_discovery called: main_url={main_url}, feed_url={feed_url}")

    params = {}
    if main_url:
        params["main_url"] = main_url
    if feed_url:
        params["feed_url"] = feed_url

    pipeline = await get_pipeline()
    instance = await pipeline.discovery.create(params)

    return {
        "success": True,
        "workflow_id": instance.id,
        "message": "News discovery workflow started",
    }


async def trigger_delivery(
    url: str,
    title: str,
    content: str,
    image_url: str = "",
    reprocess: bool = False,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Summarize and deliver a single article to the channel.

    Unless reprocess is true, an article already delivered within the last
    24 hours is skipped by the workflow.

    Args:
        url: Article URL (identifies the article)
        title: Article headline
        content: Article text to summarize
        image_url: Image for the post (empty string uses the fallback image)
        reprocess: Deliver even if the article was already delivered
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - workflow_id: id of the delivery instance
        - message: confirmation string
        - reprocessing: whether the idempotency check is bypassed
        - error: string if success is False
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"trigger_delivery called: url={url}, reprocess={reprocess}")

    if not url or not title or not content:
        return {
            "success": False,
            "error": "Missing required parameters: url, title, and content are required",
        }

    article = Article(
        title=title,
        url=url,
        date_published=utc_now(),
        content=content,
        image_url=image_url or None,
    )
    unit = DeliveryUnit(article=article, reprocess=bool(reprocess))

    pipeline = await get_pipeline()
    instance = await pipeline.delivery.create(unit.to_params())

    return {
        "success": True,
        "workflow_id": instance.id,
        "message": "News delivery workflow started",
        "reprocessing": unit.reprocess,
    }


async def get_workflow_status(
    workflow_type: str,
    workflow_id: str,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Look up the status of a discovery or delivery workflow instance.

    Args:
        workflow_type: "discovery" or "delivery"
        workflow_id: Instance id returned by a trigger tool
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - workflow_id, workflow_type: echo of the request
        - status: object with status (queued, running, complete, errored),
          output, error, created_at, updated_at
        - error: string if the type is invalid or the instance is unknown
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"get_workflow_status called: type={workflow_type}, id={workflow_id}")

    pipeline = await get_pipeline()
    binding = pipeline.binding(workflow_type)

    if binding is None:
        return {
            "success": False,
            "error": f'Invalid workflow type. Use "{DISCOVERY}" or "{DELIVERY}"',
        }

    instance = await binding.get(workflow_id)
    if instance is None:
        return {
            "success": False,
            "error": "Workflow instance not found",
        }

    return {
        "success": True,
        "workflow_id": workflow_id,
        "workflow_type": workflow_type,
        "status": await instance.status(),
    }


async def health(ctx: Context = None) -> Dict[str, Any]:
    """Report whether the news_brief workflow service is ready.

    Args:
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with success and a status message
    """
    await get_pipeline()
    return {
        "success": True,
        "message": "news_brief workflows service ready",
    }


# List of pipeline tools for registration
pipeline_tools = [
    trigger_discovery,
    trigger_delivery,
    get_workflow_status,
    health,
]
