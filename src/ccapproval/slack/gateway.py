from __future__ import annotations

import logging
from typing import Protocol

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from ccapproval.approval.models import MessageLocation, RenderedMessage

logger = logging.getLogger(__name__)


class MessagingGateway(Protocol):
    async def post_message(
        self, channel: str, message: RenderedMessage, *, thread_ts: str | None = None
    ) -> MessageLocation: ...

    async def update_message(self, location: MessageLocation, message: RenderedMessage) -> None: ...

    async def delete_message(self, location: MessageLocation) -> None: ...

    async def add_reaction(self, location: MessageLocation, name: str) -> None: ...

    async def remove_reaction(self, location: MessageLocation, name: str) -> None: ...

    async def is_channel_member(self, channel_id: str) -> bool: ...


class SlackGateway(MessagingGateway):
    """Slack Web API implementation of the messaging gateway."""

    def __init__(self, client: AsyncWebClient) -> None:
        self.client = client

    async def post_message(
        self, channel: str, message: RenderedMessage, *, thread_ts: str | None = None
    ) -> MessageLocation:
        response = await self.client.chat_postMessage(
            channel=channel,
            text=message.summary_text,
            blocks=message.blocks,
            thread_ts=thread_ts,
        )
        ts = response.get("ts")
        channel_id = response.get("channel")
        if not ts or not channel_id:
            raise RuntimeError("Slack did not return a message timestamp and channel")
        return MessageLocation(channel_id=str(channel_id), message_ts=str(ts))

    async def update_message(self, location: MessageLocation, message: RenderedMessage) -> None:
        await self.client.chat_update(
            channel=location.channel_id,
            ts=location.message_ts,
            text=message.summary_text,
            blocks=message.blocks,
        )

    async def delete_message(self, location: MessageLocation) -> None:
        await self.client.chat_delete(channel=location.channel_id, ts=location.message_ts)

    async def add_reaction(self, location: MessageLocation, name: str) -> None:
        try:
            await self.client.reactions_add(
                channel=location.channel_id, timestamp=location.message_ts, name=name
            )
        except SlackApiError as e:
            if e.response.get("error") != "already_reacted":
                raise

    async def remove_reaction(self, location: MessageLocation, name: str) -> None:
        try:
            await self.client.reactions_remove(
                channel=location.channel_id, timestamp=location.message_ts, name=name
            )
        except SlackApiError as e:
            if e.response.get("error") != "no_reaction":
                raise

    async def is_channel_member(self, channel_id: str) -> bool:
        response = await self.client.conversations_info(channel=channel_id)
        channel = response.get("channel") or {}
        is_member = bool(channel.get("is_member", False))
        # DMs and group DMs do not report membership; posting succeeded so treat as member.
        if channel.get("is_im") or channel.get("is_mpim"):
            return True
        logger.debug("Membership for channel %s: %s", channel_id, is_member)
        return is_member
