"""对外 HTTP 服务模块（FastAPI）。

每个 Agent 类型对应一个端点 ``POST /agents/{flavor}``：
请求体 ``{"prompt": str, "thread_id": str?}``，成功返回 ``{"result": str, "thread_id": str}``。
所有 BusinessError 统一渲染为 ``{"error": message, "kind": code}``。
"""

import json
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from agent_api.agents.flavors import build_agents
from agent_api.agents.session import ChatAgent
from agent_api.config.settings import settings
from agent_api.domain.exceptions import BusinessError, UnknownAgentError, ValidationError
from agent_api.infrastructure.logging.logger import logger


def create_app(agents: Optional[Dict[str, ChatAgent]] = None) -> FastAPI:
    app = FastAPI(title="Agent API")
    app.state.agents = agents if agents is not None else build_agents()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(BusinessError)
    async def business_error_handler(request: Request, exc: BusinessError):
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        return "Hello, World!"

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/agents")
    async def list_agents():
        return {"agents": sorted(app.state.agents)}

    @app.post("/agents/{flavor}")
    async def run_agent(flavor: str, request: Request):
        agent = app.state.agents.get(flavor)
        if agent is None:
            raise UnknownAgentError(message=f"Unknown agent: {flavor!r}", agent=flavor)
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError(code="INVALID_JSON", message="Request body must be JSON") from None
        if not isinstance(body, dict):
            raise ValidationError(message="Prompt is required")

        thread_id = body.get("thread_id")
        if thread_id is not None and not isinstance(thread_id, str):
            raise ValidationError(code="INVALID_THREAD_ID", message="thread_id must be a string")
        try:
            result = await agent.run(
                body.get("prompt"),
                thread_id,
                is_cancelled=request.is_disconnected,
            )
        except BusinessError as exc:
            logger.error(
                f"Agent {flavor} failed: {exc.message}",
                extra={"extra": {"agent": flavor, "thread_id": thread_id, "kind": exc.code}},
            )
            raise
        return {"result": result, "thread_id": thread_id or agent.default_thread_id}

    return app
