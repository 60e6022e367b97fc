"""
GitHub Client Pool
One cached client per credential, chosen through the token pool
"""

import logging
from typing import Callable, Dict, Optional, Tuple

from .exceptions import SkillIndexerError
from .github_client import GitHubClient
from .token_pool import TokenPool

logger = logging.getLogger(__name__)


class ClientPool:
    def __init__(self, token_pool: TokenPool, client_factory: Optional[Callable[..., GitHubClient]] = None):
        self.token_pool = token_pool
        self.client_factory = client_factory or GitHubClient
        self._clients: Dict[str, GitHubClient] = {}

    def get_instance(self, credential: str) -> GitHubClient:
        """Lazily build the client for a credential; later calls return the same one"""
        client = self._clients.get(credential)
        if client is None:
            client = self.client_factory(credential, on_headers=self.token_pool.update_stats)
            self._clients[credential] = client
        return client

    def get_best_instance(self) -> Tuple[GitHubClient, str]:
        credential = self.token_pool.check_and_rotate()
        return self.get_instance(credential), credential

    async def refresh_rate_limits(self) -> None:
        """Ask /rate_limit for every token's real numbers"""
        for record in self.token_pool.tokens:
            client = self.get_instance(record.credential)
            try:
                core = await client.get_rate_limit()
            except SkillIndexerError as e:
                logger.warning(f"[{record.name}] Could not refresh rate limit: {e}")
                continue
            self.token_pool.apply_rate_limit(record.credential, core)

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
