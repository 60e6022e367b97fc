"""
GitHub Token Pool
Tracks quota per credential and picks the best usable one
"""

import logging
import time
from typing import Dict, List, Mapping, Optional

from .config import (
    DEFAULT_RATE_LIMIT,
    SECONDARY_LIMIT_CEILING,
    get_github_token_names,
    get_github_tokens,
)
from .exceptions import ConfigurationError, RateLimitExhausted
from .models import TokenRecord

logger = logging.getLogger(__name__)


def _header(headers: Mapping, name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.title())
    return value


class TokenPool:
    """Manage multiple GitHub tokens for rate limit rotation"""

    def __init__(self, tokens: List[str], names: Optional[List[str]] = None, clock=time.time):
        if not tokens:
            raise ConfigurationError("TokenPool needs at least one GitHub token")

        self.clock = clock
        names = names if names and len(names) == len(tokens) else [f"token-{i + 1}" for i in range(len(tokens))]
        now = self.clock()
        self.tokens: List[TokenRecord] = [
            TokenRecord(
                credential=token,
                name=name,
                remaining=DEFAULT_RATE_LIMIT,
                reset_at=now + 3600,
                limit=DEFAULT_RATE_LIMIT,
            )
            for token, name in zip(tokens, names)
        ]
        self._by_credential: Dict[str, TokenRecord] = {t.credential: t for t in self.tokens}
        self._current: Optional[str] = None

        logger.info(f"TokenPool initialized with {len(self.tokens)} token(s)")

    @classmethod
    def from_env(cls) -> 'TokenPool':
        tokens = get_github_tokens()
        if not tokens:
            raise ConfigurationError(
                "No GitHub tokens configured. Set GITHUB_TOKEN or GITHUB_TOKENS environment variable"
            )
        return cls(tokens, get_github_token_names(len(tokens)))

    def get_record(self, credential: str) -> Optional[TokenRecord]:
        return self._by_credential.get(credential)

    def get_best_token(self) -> str:
        """Usable token with the highest remaining quota, else RateLimitExhausted"""
        now = self.clock()
        usable = [t for t in self.tokens if t.is_usable(now)]

        if not usable:
            earliest = min(t.reset_at for t in self.tokens)
            raise RateLimitExhausted(reset_at=earliest)

        best = max(usable, key=lambda t: t.effective_remaining(now))
        best.last_used_at = now
        return best.credential

    def check_and_rotate(self) -> str:
        """Replenish reset windows, select the best token and log rotations"""
        now = self.clock()
        for record in self.tokens:
            if now >= record.reset_at and record.remaining < record.limit:
                record.remaining = record.limit
                record.reset_at = now + 3600

        try:
            best = self.get_best_token()
        except RateLimitExhausted as e:
            wait = max(0.0, e.reset_at - now)
            logger.warning(f"All tokens exhausted, earliest reset in {wait:.0f}s")
            raise

        if self._current and best != self._current:
            previous = self._by_credential.get(self._current)
            chosen = self._by_credential[best]
            if previous is not None:
                reason = 'token exhausted' if not previous.is_usable(now) else 'more quota available'
                logger.info(f"Token rotation [{previous.name}] -> [{chosen.name}]: {reason}")
        self._current = best
        return best

    def update_stats(self, credential: str, headers: Mapping) -> None:
        """Update quota numbers from GitHub rate limit response headers"""
        record = self._by_credential.get(credential)
        if record is None:
            return

        remaining = _header(headers, 'x-ratelimit-remaining')
        reset = _header(headers, 'x-ratelimit-reset')
        limit = _header(headers, 'x-ratelimit-limit')

        try:
            parsed_limit = int(limit) if limit is not None else 0
        except ValueError:
            parsed_limit = 0

        # Code search reports its own small limit; keep it out of the primary numbers
        if 0 < parsed_limit < SECONDARY_LIMIT_CEILING:
            return

        try:
            if remaining is not None:
                record.remaining = int(remaining)
            if reset is not None:
                record.reset_at = float(reset)
        except ValueError:
            logger.debug(f"[{record.name}] Ignoring malformed rate limit headers")
            return
        if parsed_limit > 0:
            record.limit = parsed_limit

        if record.remaining % 100 == 0 or record.remaining == 0:
            logger.info(f"[{record.name}] {record.remaining}/{record.limit} requests remaining")

    def apply_rate_limit(self, credential: str, core: dict) -> None:
        """Set a token's numbers from the /rate_limit 'core' resource"""
        record = self._by_credential.get(credential)
        if record is None:
            return
        record.remaining = int(core.get('remaining', record.remaining))
        record.reset_at = float(core.get('reset', record.reset_at))
        record.limit = int(core.get('limit', record.limit))
        logger.info(f"[{record.name}] Refreshed: {record.remaining}/{record.limit}")

    def get_status(self) -> dict:
        now = self.clock()
        return {
            'total_tokens': len(self.tokens),
            'available_tokens': sum(1 for t in self.tokens if t.is_usable(now)),
            'global_remaining': sum(t.remaining for t in self.tokens),
            'next_reset': min(t.reset_at for t in self.tokens),
            'tokens': [
                {
                    'name': t.name,
                    'remaining': t.remaining,
                    'limit': t.limit,
                    'reset_at': t.reset_at,
                    'usable': t.is_usable(now),
                }
                for t in self.tokens
            ],
        }
