"""Exception classes for the skill indexer."""

from typing import Optional


class SkillIndexerError(Exception):
    """Base exception for all skill indexer errors."""
    pass


class ConfigurationError(SkillIndexerError):
    """Raised when required configuration (tokens, paths) is missing."""
    pass


class NotFound(SkillIndexerError):
    """Raised when no instruction file exists at any candidate path."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class TransportError(SkillIndexerError):
    """Raised on network failures and timeouts."""
    pass


class FetchUnavailable(TransportError):
    """Raised when both the API and the raw-content fallback failed."""
    pass


class FetchFailed(SkillIndexerError):
    """Raised when the API returned an error other than 404 for a source."""
    pass


class GitHubApiError(SkillIndexerError):
    """Raised when the GitHub API answers with a non-2xx status."""

    def __init__(self, status: int, message: str, headers: Optional[dict] = None):
        super().__init__(f"GitHub API {status}: {message}")
        self.status = status
        self.message = message
        self.headers = headers or {}

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_secondary_rate_limit(self) -> bool:
        text = self.message.lower()
        return self.status == 403 and ('secondary rate limit' in text or 'abuse detection' in text)

    @property
    def is_rate_limit(self) -> bool:
        return self.status == 429 or (self.status == 403 and 'rate limit' in self.message.lower())

    @property
    def is_beyond_results_limit(self) -> bool:
        return self.status == 422

    @property
    def retry_after(self) -> int:
        """Seconds to wait before retrying, at least 10, default 60"""
        value = self.headers.get('retry-after') or self.headers.get('Retry-After')
        try:
            return max(int(value), 10)
        except (TypeError, ValueError):
            return 60


class RateLimitExhausted(SkillIndexerError):
    """Raised when every configured token is out of quota."""

    def __init__(self, reset_at: float):
        super().__init__(f"All GitHub tokens exhausted until {reset_at:.0f}")
        self.reset_at = reset_at


class SearchSyncFailed(SkillIndexerError):
    """Raised when a search index write is rejected."""
    pass


class ScanFailed(SkillIndexerError):
    """Raised when the security heuristic fails on a stored row."""
    pass
