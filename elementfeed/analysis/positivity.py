"""Positivity scorer (0-100 wellbeing score)."""

from __future__ import annotations

import logging

from ..errors import AnalysisServiceError
from ..lexicon import Lexicon, load_lexicon
from .client import AnalysisClient

logger = logging.getLogger(__name__)

POSITIVITY_PROMPT = """You are a positivity content analyzer for a mental health-focused platform.
Analyze the given text and return a positivity score from 0 to 100.

Scoring guide:
- 90-100: Extremely positive, uplifting, inspiring, promotes well-being
- 70-89: Generally positive, encouraging, supportive
- 50-69: Neutral or mixed content
- 30-49: Somewhat negative but not harmful
- 0-29: Negative, discouraging (but not necessarily unsafe)

Respond in JSON format only:
{
  "score": number,
  "reasoning": "Brief explanation"
}"""

BASELINE_SCORE = 50
POSITIVE_BONUS = 5
# Deliberately larger than the bonus: negative language weighs more
NEGATIVE_PENALTY = 8


def clamp_score(value: float) -> int:
    return int(min(100, max(0, round(value))))


def heuristic_positivity(text: str, lexicon: Lexicon | None = None) -> int:
    """Baseline 50, +5 per positive keyword, -8 per negative keyword."""
    positive, negative = (lexicon or load_lexicon()).sentiment_hits(text)
    return clamp_score(
        BASELINE_SCORE + positive * POSITIVE_BONUS - negative * NEGATIVE_PENALTY
    )


class PositivityScorer:
    def __init__(
        self,
        client: AnalysisClient,
        *,
        model: str = "gpt-4o-mini",
        lexicon: Lexicon | None = None,
    ):
        self._client = client
        self._model = model
        self._lexicon = lexicon or load_lexicon()

    async def score(self, text: str) -> int:
        """Return an integer score in [0, 100]. Never raises."""
        if not self._client.configured:
            return heuristic_positivity(text, self._lexicon)

        monitor = self._client.cost_monitor
        if monitor is not None and monitor.should_block():
            logger.warning(
                "Analysis budget exhausted, using keyword positivity",
                extra={"category": "ai-cost", "operation": "positivity"},
            )
            return heuristic_positivity(text, self._lexicon)

        try:
            parsed = await self._client.chat_json(
                self._model,
                POSITIVITY_PROMPT,
                f"Analyze positivity:\n\n{text}",
                max_tokens=100,
                operation="positivity",
            )
        except AnalysisServiceError as e:
            logger.warning(
                f"Positivity analysis failed, using keyword fallback: {e}",
                extra={"category": "ai-analysis"},
            )
            return heuristic_positivity(text, self._lexicon)

        score = parsed.get("score")
        if not isinstance(score, (int, float)) or isinstance(score, bool):
            logger.warning(
                f"Positivity response has no numeric score: {score!r}",
                extra={"category": "ai-analysis"},
            )
            return heuristic_positivity(text, self._lexicon)
        return clamp_score(score)
