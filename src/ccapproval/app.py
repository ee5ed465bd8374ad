from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI

from ccapproval.api.routes_approvals import router as approvals_router
from ccapproval.approval.intake import DecisionIntake
from ccapproval.approval.registry import ApprovalRegistry
from ccapproval.config.settings import ApiConfig

logger = logging.getLogger(__name__)


def create_app(*, registry: ApprovalRegistry, intake: DecisionIntake) -> FastAPI:
    app = FastAPI(title="ccapproval")
    # The API shares the registry with the MCP server so both see the same approvals.
    app.state.registry = registry
    app.state.intake = intake
    app.include_router(approvals_router)
    return app


def build_api_server(app: FastAPI, config: ApiConfig) -> uvicorn.Server:
    """Build a uvicorn server that runs inside the caller's event loop.

    ``log_config=None`` keeps uvicorn on our stderr logging; stdout belongs to MCP.
    """
    server_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_config=None,
        access_log=False,
        lifespan="off",
    )
    logger.info("Local approval API on http://%s:%d", config.host, config.port)
    return uvicorn.Server(server_config)
