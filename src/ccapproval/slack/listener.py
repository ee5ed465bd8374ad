from __future__ import annotations

import logging

from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient

from ccapproval.approval.intake import DecisionIntake
from ccapproval.errors import InvalidInteractionError

logger = logging.getLogger(__name__)


class SlackInteractionListener:
    """Receives Socket Mode envelopes and hands button clicks to the decision intake.

    Every envelope is acknowledged first; Slack retries envelopes that are not acked
    within a few seconds.
    """

    def __init__(self, client: SocketModeClient, intake: DecisionIntake) -> None:
        self.client = client
        self.intake = intake
        self.client.socket_mode_request_listeners.append(self._on_request)

    @classmethod
    def create(
        cls, *, app_token: str, web_client: AsyncWebClient, intake: DecisionIntake
    ) -> SlackInteractionListener:
        client = SocketModeClient(app_token=app_token, web_client=web_client)
        return cls(client, intake)

    async def start(self) -> None:
        await self.client.connect()
        logger.info("Connected to Slack Socket Mode")

    async def stop(self) -> None:
        await self.client.close()
        logger.debug("Socket Mode connection closed")

    async def _on_request(self, client: SocketModeClient, req: SocketModeRequest) -> None:
        async def ack() -> None:
            await client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))

        payload = req.payload or {}
        if req.type != "interactive" or payload.get("type") != "block_actions":
            await ack()
            logger.debug("Ignoring Socket Mode envelope type=%s", req.type)
            return

        try:
            await self.intake.handle_interaction(payload, ack)
        except InvalidInteractionError as e:
            logger.warning("Dropping interaction: %s", e)
