"""Error types."""


class ElementFeedError(Exception):
    """Base class for pipeline errors."""


class ConfigError(ElementFeedError):
    """Configuration error."""


class AnalysisServiceError(ElementFeedError):
    """External analysis service failed or returned a malformed response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class BudgetExceededError(AnalysisServiceError):
    """Paid analysis call refused because the spend window is exhausted."""


class ContentNotFoundError(ElementFeedError):
    """Content item does not exist in the store."""

    def __init__(self, content_type: str, content_id: int):
        super().__init__(f"Content not found: {content_type}/{content_id}")
        self.content_type = content_type
        self.content_id = content_id


class IllegalTransitionError(ElementFeedError):
    """Moderation status change not permitted by the state machine."""


class StoreError(ElementFeedError):
    """Persistent store operation failed."""


class JobFailedError(ElementFeedError):
    """Background job exhausted its retries."""


class StaleContentError(StoreError):
    """Content item changed status since it was read."""
