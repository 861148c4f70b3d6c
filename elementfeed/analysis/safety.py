"""Safety screener backed by the moderation endpoint.

Fallback policy is asymmetric on purpose:

- no API key configured: content is trusted (``is_safe=True``)
- key configured but the call fails or the response is malformed: content is
  distrusted (``is_safe=False``, risk ``medium``, flag ``api_error``) so that
  an outage routes items to human review instead of auto-approving them
"""

from __future__ import annotations

import logging
from typing import Any

from ..errors import AnalysisServiceError
from ..lexicon import load_lexicon
from ..models import RiskLevel, SafetyAssessment
from .client import AnalysisClient

logger = logging.getLogger(__name__)

API_ERROR_FLAG = "api_error"

# More flagged categories than this is high risk on its own
MAX_FLAGS_BEFORE_HIGH_RISK = 2


def unconfigured_assessment() -> SafetyAssessment:
    return SafetyAssessment(is_safe=True, flags=[], risk_level=RiskLevel.NONE)


def api_error_assessment() -> SafetyAssessment:
    return SafetyAssessment(
        is_safe=False, flags=[API_ERROR_FLAG], risk_level=RiskLevel.MEDIUM
    )


def risk_level_for(flags: list[str], high_risk_categories: set[str]) -> RiskLevel:
    if any(flag in high_risk_categories for flag in flags):
        return RiskLevel.HIGH
    if len(flags) > MAX_FLAGS_BEFORE_HIGH_RISK:
        return RiskLevel.HIGH
    if flags:
        return RiskLevel.MEDIUM
    return RiskLevel.NONE


def assess_moderation_result(
    result: dict[str, Any] | None,
    high_risk_categories: set[str],
) -> SafetyAssessment:
    """Flatten a moderation result into a :class:`SafetyAssessment`."""
    if not result:
        return SafetyAssessment(is_safe=True, flags=[], risk_level=RiskLevel.NONE)

    categories = result.get("categories") or {}
    if not isinstance(categories, dict):
        raise AnalysisServiceError("Moderation categories is not an object")
    flags = sorted(name for name, flagged in categories.items() if flagged is True)

    is_flagged = result.get("flagged") is True
    risk = risk_level_for(flags, high_risk_categories) if is_flagged else RiskLevel.NONE
    return SafetyAssessment(is_safe=not is_flagged, flags=flags, risk_level=risk)


class SafetyScreener:
    """Screens text with the external moderation service."""

    def __init__(
        self,
        client: AnalysisClient,
        high_risk_categories: set[str] | None = None,
    ):
        self._client = client
        self._high_risk = (
            high_risk_categories
            if high_risk_categories is not None
            else set(load_lexicon().high_risk_safety_categories)
        )

    async def check_content(self, text: str) -> SafetyAssessment:
        if not self._client.configured:
            logger.warning("Analysis API not configured, trusting content safety")
            return unconfigured_assessment()

        try:
            result = await self._client.moderate(text)
            return assess_moderation_result(result, self._high_risk)
        except AnalysisServiceError as e:
            logger.error(
                f"Safety check failed, routing to review: {e}",
                extra={"category": "ai-analysis"},
            )
            return api_error_assessment()

    async def check_video(
        self,
        title: str,
        description: str | None = None,
        media_url: str | None = None,
    ) -> SafetyAssessment:
        # Only the text metadata is screened; media_url is not fetched.
        return await self.check_content(f"{title} {description or ''}".strip())
