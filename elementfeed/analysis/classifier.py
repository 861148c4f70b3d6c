"""Element classifier.

Maps content to one of the five element categories. The external model is
tried first; every failure path ends in the local keyword heuristic, so
:meth:`ContentClassifier.classify_text` and
:meth:`ContentClassifier.classify_video` never raise.
"""

from __future__ import annotations

import asyncio
import logging
import random

from ..errors import AnalysisServiceError
from ..lexicon import Lexicon, load_lexicon
from ..models import CATEGORIES, AnalysisSource, Category, ClassificationResult
from .budget import AnalysisBatcher
from .client import AnalysisClient

logger = logging.getLogger(__name__)

ELEMENT_PROMPT = """You are an AI content analyzer for a spiritual wellness platform. Analyze the given content and categorize it into ONE of these 5 element categories:

1. **Water** - Flow, emotion, intuition, adaptability. Content that soothes, inspires reflection, emotional depth.
2. **Fire** - Passion, energy, transformation, willpower. Content that motivates, energizes, sparks action.
3. **Earth** - Stability, grounding, nurture, growth. Content that centers, grounds, connects to nature.
4. **Air** - Intellect, communication, freedom, perspective. Content that expands thinking, broadens horizons.
5. **Spiritual** - Transcendence, unity, divine connection. Content that elevates spirit, deepens spiritual practice.

Respond in JSON format:
{
  "elementType": "Water" | "Fire" | "Earth" | "Air" | "Spiritual",
  "confidence": 0.0 to 1.0,
  "reasoning": "Brief explanation of why this element was chosen"
}"""

# Confidence reported when no keyword matched and the category was drawn at random
RANDOM_CONFIDENCE = 0.3

# Confidence per keyword hit, capped
KEYWORD_CONFIDENCE_STEP = 0.2
KEYWORD_CONFIDENCE_CAP = 0.8


def parse_category(value: object) -> Category | None:
    """Case-insensitive match against the taxonomy."""
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    for category in CATEGORIES:
        if category.value.lower() == normalized:
            return category
    return None


def heuristic_classification(
    text: str,
    rng: random.Random,
    lexicon: Lexicon | None = None,
) -> ClassificationResult:
    """Keyword-count classification with a uniform random fallback."""
    lexicon = lexicon or load_lexicon()
    hits = lexicon.category_hits(text)

    best_category = Category.SPIRITUAL
    best_score = 0
    for category, score in hits.items():
        if score > best_score:
            best_category, best_score = category, score

    if best_score == 0:
        return ClassificationResult(
            category=rng.choice(CATEGORIES),
            confidence=RANDOM_CONFIDENCE,
            reasoning="Random assignment (no keyword matched)",
            source=AnalysisSource.HEURISTIC,
        )

    return ClassificationResult(
        category=best_category,
        confidence=min(KEYWORD_CONFIDENCE_CAP, best_score * KEYWORD_CONFIDENCE_STEP),
        reasoning=f"Keyword analysis matched {best_score} {best_category.value} keywords",
        source=AnalysisSource.HEURISTIC,
    )


class ContentClassifier:
    """External-model classifier with keyword fallback."""

    def __init__(
        self,
        client: AnalysisClient,
        *,
        video_model: str = "gpt-4o",
        text_model: str = "gpt-4o-mini",
        rng: random.Random | None = None,
        lexicon: Lexicon | None = None,
        batch_size: int = 5,
        batch_flush_interval: float = 10.0,
    ):
        self._client = client
        self._video_model = video_model
        self._text_model = text_model
        self._rng = rng or random.Random()
        self._lexicon = lexicon or load_lexicon()
        self._batch_size = batch_size
        self._batch_flush_interval = batch_flush_interval
        self._batcher: AnalysisBatcher[str, ClassificationResult] | None = None

    async def classify_text(self, text: str) -> ClassificationResult:
        prompt = f"Analyze this text content and categorize:\n\n{text}"
        return await self._classify(self._text_model, prompt, text, "classify_text")

    async def classify_video(
        self,
        title: str,
        description: str | None = None,
        media_url: str | None = None,
    ) -> ClassificationResult:
        prompt = (
            "Analyze this content:\n"
            f"Title: {title}\n"
            f"Description: {description or 'No description'}\n"
            f"Video URL: {media_url or ''}"
        )
        fallback_text = f"{title} {description or ''}"
        return await self._classify(
            self._video_model, prompt, fallback_text, "classify_video"
        )

    def enqueue(self, text: str) -> asyncio.Future[ClassificationResult]:
        """Classify *text* through the shared batcher."""
        if self._batcher is None:
            self._batcher = AnalysisBatcher(
                self._classify_batch,
                batch_size=self._batch_size,
                flush_interval=self._batch_flush_interval,
            )
        return self._batcher.enqueue(text)

    async def close(self) -> None:
        if self._batcher is not None:
            await self._batcher.close()

    async def _classify_batch(self, texts: list[str]) -> list[ClassificationResult]:
        return [await self.classify_text(text) for text in texts]

    def _fallback(self, text: str) -> ClassificationResult:
        return heuristic_classification(text, self._rng, self._lexicon)

    async def _classify(
        self, model: str, prompt: str, fallback_text: str, operation: str
    ) -> ClassificationResult:
        if not self._client.configured:
            logger.debug("Analysis API not configured, using keyword classification")
            return self._fallback(fallback_text)

        monitor = self._client.cost_monitor
        if monitor is not None and monitor.should_block():
            logger.warning(
                "Analysis budget exhausted, using keyword classification",
                extra={"category": "ai-cost", "operation": operation},
            )
            return self._fallback(fallback_text)

        try:
            parsed = await self._client.chat_json(
                model, ELEMENT_PROMPT, prompt, operation=operation
            )
        except AnalysisServiceError as e:
            logger.warning(
                f"Classification failed, using keyword fallback: {e}",
                extra={"category": "ai-analysis", "operation": operation},
            )
            return self._fallback(fallback_text)

        category = parse_category(parsed.get("elementType"))
        if category is None:
            logger.warning(
                f"Classifier returned unknown category {parsed.get('elementType')!r}",
                extra={"category": "ai-analysis", "operation": operation},
            )
            return self._fallback(fallback_text)

        confidence = parsed.get("confidence")
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            confidence = 0.5

        return ClassificationResult(
            category=category,
            confidence=min(1.0, max(0.0, float(confidence))),
            reasoning=str(parsed.get("reasoning") or "AI analysis completed"),
            source=AnalysisSource.EXTERNAL,
        )
