"""
Intent classification with ordered fallback across backends.
"""

import logging
from typing import Optional, Sequence

from ..models import ParsedIntent, degraded_intent
from .backends import ClassifierBackend

logger = logging.getLogger(__name__)


class IntentClassifier:
    """
    Try each backend in order until one succeeds.

    If every backend fails the classifier returns a neutral BALANCE result
    instead of raising: a classification failure never aborts the
    conversation.
    """

    def __init__(self, backends: Sequence[ClassifierBackend]):
        self.backends = list(backends)

    async def classify(
        self, text: str, reply_context: Optional[dict] = None
    ) -> ParsedIntent:
        for backend in self.backends:
            try:
                parsed = await backend.parse_text(text, reply_context)
            except Exception:
                logger.warning(
                    "Classifier backend '%s' failed, trying next", backend.name,
                    exc_info=True,
                )
                continue

            logger.info("Classified with '%s' as %s", backend.name, parsed.intent.value)
            return parsed

        logger.error(
            "All %d classifier backends failed, using degraded result", len(self.backends)
        )
        return degraded_intent()
