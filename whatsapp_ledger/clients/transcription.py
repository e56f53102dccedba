"""
Client for Sarvam AI speech-to-text.
"""

import logging
from typing import Optional

import httpx
from fastapi import HTTPException

from ..models import Transcription

logger = logging.getLogger(__name__)


class SarvamTranscriptionClient:
    """Transcribe (and translate to English) voice notes with Sarvam AI"""

    def __init__(
        self,
        api_key: str,
        url: str = "https://api.sarvam.ai/speech-to-text-translate",
        model: str = "saaras:v2.5",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.model = model
        self.headers = {"api-subscription-key": api_key}
        self.transport = transport

    async def transcribe(
        self, audio: bytes, filename: str = "audio.ogg"
    ) -> Transcription:
        """
        Transcribe an audio file.

        Failures are terminal: there is no fallback transcription service.
        """
        logger.info("Transcribing %s (%d bytes)", filename, len(audio))

        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.post(
                self.url,
                headers=self.headers,
                files={"file": (filename, audio)},
                data={"model": self.model},
                timeout=60.0,
            )

            if response.status_code != 200:
                raise HTTPException(
                    status_code=502,
                    detail=f"Sarvam API error: {response.text}",
                )

            data = response.json()

        return Transcription(
            text=data.get("transcript", ""),
            language=data.get("language_code"),
        )
