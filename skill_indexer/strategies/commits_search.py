"""
Commit search strategy
Repositories with recent commits mentioning SKILL.md, including commits on
non-default branches
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, List, Optional

from ..client_pool import ClientPool
from ..config import COMMIT_SEARCH_QUERIES, COMMITS_DAYS_BACK, COMMITS_MAX_PAGES, PER_PAGE
from ..exceptions import GitHubApiError, TransportError
from ..models import RepoCandidate

logger = logging.getLogger(__name__)

MAX_RATE_LIMIT_RETRIES = 3


class CommitsSearchStrategy:
    name = 'commits-search'

    def __init__(
        self,
        client_pool: ClientPool,
        days_back: int = COMMITS_DAYS_BACK,
        queries: Optional[List[str]] = None,
        max_pages: int = COMMITS_MAX_PAGES,
        per_page: int = PER_PAGE,
        clock=time.time,
    ):
        self.client_pool = client_pool
        self.days_back = days_back
        self.queries = queries if queries is not None else COMMIT_SEARCH_QUERIES
        self.max_pages = max_pages
        self.per_page = per_page
        self.clock = clock

    def build_queries(self) -> List[str]:
        now = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
        since = (now - timedelta(days=self.days_back)).strftime('%Y-%m-%d')
        return [q.format(since=since) for q in self.queries]

    async def fetch_page(self, query: str, page: int) -> Optional[dict]:
        for _ in range(MAX_RATE_LIMIT_RETRIES):
            client, _ = self.client_pool.get_best_instance()
            try:
                response = await client.search_commits(query, page=page, per_page=self.per_page)
                return response.data or {}
            except GitHubApiError as e:
                if e.is_rate_limit:
                    logger.warning(f"    Rate limit hit on '{query}', rotating token")
                    continue
                if e.is_beyond_results_limit:
                    logger.info(f"    Reached 1000 result limit for {query}")
                else:
                    logger.warning(f"    Commit search failed for '{query}' page {page}: {e}")
                return None
            except TransportError as e:
                logger.warning(f"    Commit search failed for '{query}' page {page}: {e}")
                return None
        logger.warning(f"    Giving up on '{query}' page {page} after {MAX_RATE_LIMIT_RETRIES} retries")
        return None

    async def discover(self, seeds=None) -> AsyncIterator[RepoCandidate]:
        queries = self.build_queries()
        logger.info(f"Searching commits from the last {self.days_back} days")

        seen = set()
        for query in queries:
            logger.info(f"  Query: {query}")
            for page in range(1, self.max_pages + 1):
                data = await self.fetch_page(query, page)
                if data is None:
                    break
                if page == 1:
                    logger.info(f"    Total results: {data.get('total_count', 0)}")

                items = data.get('items', [])
                for item in items:
                    repository = item.get('repository') or {}
                    owner = (repository.get('owner') or {}).get('login')
                    repo = repository.get('name')
                    if not owner or not repo:
                        continue
                    candidate = RepoCandidate(owner, repo, discovered_via=self.name)
                    if candidate.key in seen:
                        continue
                    seen.add(candidate.key)
                    yield candidate

                if len(items) < self.per_page:
                    break

        logger.info(f"Commit search found {len(seen)} unique repositories")
