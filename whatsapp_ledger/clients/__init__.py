"""Outbound HTTP collaborators: WhatsApp messaging and speech-to-text."""

from .transcription import SarvamTranscriptionClient
from .whatsapp import WhatsAppClient, extension_for

__all__ = ["SarvamTranscriptionClient", "WhatsAppClient", "extension_for"]
