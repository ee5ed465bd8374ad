from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import uvicorn
from slack_sdk.web.async_client import AsyncWebClient

from ccapproval.app import build_api_server, create_app
from ccapproval.approval.intake import DecisionIntake
from ccapproval.approval.orchestrator import ApprovalOrchestrator
from ccapproval.approval.registry import ApprovalRegistry
from ccapproval.config import Settings, load_settings
from ccapproval.mcp import ApprovalServer
from ccapproval.slack.gateway import SlackGateway
from ccapproval.slack.listener import SlackInteractionListener
from ccapproval.store import JsonFileThreadStore

logger = logging.getLogger(__name__)


def configure_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    parser = subparsers.add_parser("mcp", help="Run the approval MCP server over stdio")
    parser.set_defaults(func=run_mcp)
    parser.add_argument("--config", type=Path, help="Path to ccapproval.toml")
    parser.add_argument("--channel", help="Slack channel to post approval requests to")
    parser.add_argument(
        "--timeout",
        type=float,
        dest="timeout_seconds",
        help="Seconds to wait for a decision before denying",
    )
    gate = parser.add_mutually_exclusive_group()
    gate.add_argument(
        "--gate-all",
        dest="gate_all_tools",
        action="store_const",
        const=True,
        help="Require approval for every tool",
    )
    gate.add_argument(
        "--dangerous-only",
        dest="gate_all_tools",
        action="store_const",
        const=False,
        help="Require approval only for the configured dangerous tools",
    )
    parser.add_argument(
        "--api",
        dest="api_enabled",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Serve the local approval API",
    )
    parser.add_argument("--api-port", type=int, help="Port for the local approval API")
    parser.add_argument(
        "--session",
        help="Session id; reuses the Slack thread recorded for it by an earlier run",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")


@dataclass
class ApprovalService:
    """Everything one MCP server process needs, sharing a single registry."""

    settings: Settings
    orchestrator: ApprovalOrchestrator
    server: ApprovalServer
    listener: SlackInteractionListener
    api_server: uvicorn.Server | None = None


def build_service(settings: Settings, *, session_id: str | None = None) -> ApprovalService:
    """Wire registry, gateway, orchestrator and listeners together.

    Must be called with a running event loop: the Socket Mode client binds to it.
    """
    slack = settings.require_slack()

    web_client = AsyncWebClient(token=slack.bot_token)
    gateway = SlackGateway(web_client)
    registry = ApprovalRegistry()
    thread_store = JsonFileThreadStore(settings.storage.threads_path)

    orchestrator = ApprovalOrchestrator(
        registry=registry,
        gateway=gateway,
        channel=slack.channel,
        policy=settings.policy,
        timeout_seconds=settings.approval.timeout_seconds,
        mention=slack.mention,
        channel_label=slack.channel_label,
        max_parameter_chars=settings.approval.max_parameter_chars,
        thread_store=thread_store,
    )
    if session_id:
        orchestrator.session_id = session_id
        orchestrator.resume_thread()

    intake = DecisionIntake(
        registry=registry,
        gateway=gateway,
        channel_label=slack.channel_label,
        max_parameter_chars=settings.approval.max_parameter_chars,
    )
    listener = SlackInteractionListener.create(
        app_token=slack.app_token, web_client=web_client, intake=intake
    )

    api_server = None
    if settings.api.enabled:
        api_server = build_api_server(create_app(registry=registry, intake=intake), settings.api)

    return ApprovalService(
        settings=settings,
        orchestrator=orchestrator,
        server=ApprovalServer(orchestrator=orchestrator),
        listener=listener,
        api_server=api_server,
    )


def _print_startup(service: ApprovalService) -> None:
    from ccapproval.cli.ui import print_startup

    settings = service.settings
    policy = settings.policy
    gated = "[bold]all tools[/bold]" if policy.gate_all_tools else ", ".join(policy.dangerous_tools)
    rows = [
        ("Channel", f"#{settings.slack.channel}"),
        ("Gated Tools", gated or "[dim]none[/dim]"),
        ("Timeout", f"{settings.approval.timeout_seconds:g}s"),
        ("Session ID", service.orchestrator.session_id),
        ("Threads File", str(settings.storage.threads_path)),
    ]
    if service.api_server is not None:
        rows.append(("Local API", f"http://{settings.api.host}:{settings.api.port}"))
    print_startup(rows, title="Approval Server Ready", subtitle="Serving MCP over stdio")


async def _serve(settings: Settings, session_id: str | None) -> None:
    service = build_service(settings, session_id=session_id)
    await service.listener.start()
    _print_startup(service)

    api_task: asyncio.Task[None] | None = None
    if service.api_server is not None:
        api_task = asyncio.create_task(service.api_server.serve())

    try:
        await service.server.run()
    finally:
        if api_task is not None and service.api_server is not None:
            service.api_server.should_exit = True
            await api_task
        await service.listener.stop()
        logger.info("Approval server stopped")


def run_mcp(args: argparse.Namespace) -> int:
    from ccapproval.cli.ui import configure_logging

    settings = load_settings(
        config_path=args.config,
        cli_overrides={
            "channel": args.channel,
            "timeout_seconds": args.timeout_seconds,
            "gate_all_tools": args.gate_all_tools,
            "api_enabled": args.api_enabled,
            "api_port": args.api_port,
            "debug": args.verbose,
        },
    )
    configure_logging(settings.debug)

    # Fail fast on missing credentials before touching the network.
    settings.require_slack()

    asyncio.run(_serve(settings, args.session))
    return 0
