"""
Client for the WhatsApp Cloud API (Meta Graph API).
"""

import logging
from typing import Optional

import httpx
from fastapi import HTTPException

from ..models import ReplyButton

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "audio/ogg": "ogg",
    "audio/opus": "opus",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/wav": "wav",
    "audio/webm": "webm",
}


def extension_for(mime_type: Optional[str]) -> str:
    """File extension for an audio MIME type, ogg when unknown"""
    if not mime_type:
        return "ogg"
    return MIME_EXTENSIONS.get(mime_type.split(";")[0].strip(), "ogg")


class WhatsAppClient:
    """Send messages and fetch media through the WhatsApp Cloud API"""

    def __init__(
        self,
        phone_number_id: str,
        access_token: str,
        graph_version: str = "v21.0",
        graph_base: str = "https://graph.facebook.com",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.graph_url = f"{graph_base.rstrip('/')}/{graph_version}"
        self.messages_url = f"{self.graph_url}/{phone_number_id}/messages"
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        self.transport = transport

    async def _post_message(self, payload: dict) -> httpx.Response:
        async with httpx.AsyncClient(transport=self.transport) as client:
            return await client.post(
                self.messages_url, headers=self.headers, json=payload, timeout=30.0
            )

    @staticmethod
    def _message_id(response: httpx.Response) -> str:
        messages = response.json().get("messages") or [{}]
        return messages[0].get("id", "")

    async def send_message(self, to: str, body: str) -> str:
        """Send a text message and return its WhatsApp message id."""
        response = await self._post_message(
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "text",
                "text": {"body": body, "preview_url": False},
            }
        )

        if response.status_code != 200:
            raise HTTPException(
                status_code=502,
                detail=f"WhatsApp API error: {response.text}",
            )

        return self._message_id(response)

    async def send_interactive_message(
        self, to: str, body: str, buttons: list[ReplyButton]
    ) -> str:
        """Send a message with reply buttons and return its message id."""
        response = await self._post_message(
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "interactive",
                "interactive": {
                    "type": "button",
                    "body": {"text": body},
                    "action": {
                        "buttons": [
                            {"type": "reply", "reply": {"id": b.id, "title": b.title}}
                            for b in buttons
                        ]
                    },
                },
            }
        )

        if response.status_code != 200:
            raise HTTPException(
                status_code=502,
                detail=f"WhatsApp API error (interactive): {response.text}",
            )

        return self._message_id(response)

    async def mark_as_read(self, message_id: str) -> None:
        """Send a read receipt. Failures are logged, never raised."""
        await self._send_status(
            {"messaging_product": "whatsapp", "status": "read", "message_id": message_id},
            action="mark as read",
        )

    async def send_typing_indicator(self, message_id: str) -> None:
        """Mark as read and show 'typing...'. Failures are logged, never raised."""
        await self._send_status(
            {
                "messaging_product": "whatsapp",
                "status": "read",
                "message_id": message_id,
                "typing_indicator": {"type": "text"},
            },
            action="send typing indicator for",
        )

    async def _send_status(self, payload: dict, action: str) -> None:
        message_id = payload["message_id"]
        try:
            response = await self._post_message(payload)
        except httpx.HTTPError as e:
            logger.warning("Failed to %s %s: %s", action, message_id, e)
            return

        if response.status_code != 200:
            logger.warning(
                "Failed to %s %s: %s %s",
                action,
                message_id,
                response.status_code,
                response.text,
            )

    async def get_media_metadata(self, media_id: str) -> dict:
        """Look up the download URL and MIME type of an uploaded media item."""
        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.get(
                f"{self.graph_url}/{media_id}", headers=self.headers, timeout=30.0
            )

            if response.status_code != 200:
                raise HTTPException(
                    status_code=502,
                    detail=f"Failed to fetch media metadata: {response.text}",
                )

            return response.json()

    async def download_media(self, media_url: str) -> bytes:
        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.get(media_url, headers=self.headers, timeout=60.0)

            if response.status_code != 200:
                raise HTTPException(
                    status_code=502,
                    detail=f"Failed to download media: {response.status_code}",
                )

            return response.content

    async def download_media_by_id(self, media_id: str) -> tuple[bytes, dict]:
        """Metadata lookup and download in one call."""
        metadata = await self.get_media_metadata(media_id)
        content = await self.download_media(metadata["url"])
        logger.info(
            "Downloaded %d bytes of %s for media %s",
            len(content),
            metadata.get("mime_type"),
            media_id,
        )
        return content, metadata
