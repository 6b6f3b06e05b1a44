"""通用工具集（plain）：网页搜索与当前时间。"""

from datetime import datetime, timezone
from typing import Any, Dict, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from agent_api.config.settings import settings
from .definitions import Tool, ToolDef, ToolFunc, ToolInputError, ToolParam


MAX_SEARCH_RESULTS = 10


def _make_web_search_tool(cfg) -> ToolFunc:
    async def _run(args: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = str(args.get("query") or "").strip()
        if not query:
            raise ToolInputError("empty query")
        try:
            limit = int(args.get("max_results") or 3)
        except (TypeError, ValueError):
            limit = 3
        limit = max(1, min(limit, MAX_SEARCH_RESULTS))
        if not getattr(cfg, "tavily_api_key", None):
            raise RuntimeError("TAVILY_API_KEY not set")
        async with httpx.AsyncClient(timeout=cfg.http_timeout, trust_env=False) as client:
            resp = await client.post(
                f"{cfg.tavily_base_url}/search",
                json={"api_key": cfg.tavily_api_key, "query": query, "max_results": limit},
            )
        resp.raise_for_status()
        data = resp.json()
        return [
            {"title": item.get("title", ""), "url": item.get("url", ""), "content": item.get("content", "")}
            for item in (data.get("results") or [])[:limit]
        ]

    return _run


def _current_time(args: Dict[str, Any]) -> str:
    tz_name = str(args.get("timezone") or "UTC")
    try:
        tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    except ZoneInfoNotFoundError:
        raise ToolInputError(f"unknown timezone {tz_name!r}") from None
    return datetime.now(tz).isoformat(timespec="seconds")


def plain_tools(cfg=None) -> List[Tool]:
    cfg = cfg or settings
    return [
        Tool(
            definition=ToolDef(
                name="web_search",
                description="Search the web for up-to-date information. Returns titles, URLs and snippets.",
                params={
                    "query": ToolParam(
                        name="query",
                        description="Search query",
                        required=True,
                        schema={"type": "string"},
                    ),
                    "max_results": ToolParam(
                        name="max_results",
                        description="Maximum number of results, default 3",
                        required=False,
                        schema={"type": "integer", "minimum": 1, "maximum": MAX_SEARCH_RESULTS},
                    ),
                },
            ),
            func=_make_web_search_tool(cfg),
        ),
        Tool(
            definition=ToolDef(
                name="current_time",
                description="Return the current date and time in ISO-8601 format.",
                params={
                    "timezone": ToolParam(
                        name="timezone",
                        description="IANA timezone name, e.g. America/Los_Angeles. Defaults to UTC.",
                        required=False,
                        schema={"type": "string"},
                    ),
                },
            ),
            func=_current_time,
        ),
    ]
