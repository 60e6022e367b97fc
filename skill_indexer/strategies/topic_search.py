"""
Topic search strategy
Discovers repositories through GitHub topic and description search
"""

import logging
from typing import AsyncIterator, List, Optional

from ..client_pool import ClientPool
from ..config import PER_PAGE, REPO_SEARCH_QUERIES, SKILL_TOPICS, TOPIC_MAX_PAGES
from ..exceptions import GitHubApiError, TransportError
from ..models import RepoCandidate

logger = logging.getLogger(__name__)


class TopicSearchStrategy:
    name = 'topic-search'

    def __init__(
        self,
        client_pool: ClientPool,
        topics: Optional[List[str]] = None,
        queries: Optional[List[str]] = None,
        max_pages: int = TOPIC_MAX_PAGES,
        per_page: int = PER_PAGE,
    ):
        self.client_pool = client_pool
        self.topics = topics if topics is not None else SKILL_TOPICS
        self.queries = queries if queries is not None else REPO_SEARCH_QUERIES
        self.max_pages = max_pages
        self.per_page = per_page

    def build_queries(self) -> List[str]:
        return [f"topic:{topic}" for topic in self.topics] + list(self.queries)

    async def search(self, query: str) -> AsyncIterator[dict]:
        """Paginate one query until an empty or short page, at most max_pages"""
        for page in range(1, self.max_pages + 1):
            client, _ = self.client_pool.get_best_instance()
            try:
                response = await client.search_repositories(query, page=page, per_page=self.per_page)
            except GitHubApiError as e:
                if e.is_beyond_results_limit:
                    logger.info(f"  Reached 1000 result limit for: {query}")
                else:
                    logger.warning(f"  Search failed for '{query}' page {page}: {e}")
                return
            except TransportError as e:
                logger.warning(f"  Search failed for '{query}' page {page}: {e}")
                return

            items = (response.data or {}).get('items', [])
            if page == 1:
                logger.info(f"  {query}: {(response.data or {}).get('total_count', 0)} repos")

            for item in items:
                yield item

            if len(items) < self.per_page:
                return

    async def discover(self, seeds=None) -> AsyncIterator[RepoCandidate]:
        seen = set()
        for query in self.build_queries():
            async for item in self.search(query):
                owner = (item.get('owner') or {}).get('login')
                repo = item.get('name')
                if not owner or not repo:
                    logger.warning(f"  Skipping malformed search result for '{query}'")
                    continue
                candidate = RepoCandidate(
                    owner=owner,
                    repo=repo,
                    stars=item.get('stargazers_count'),
                    discovered_via=self.name,
                )
                if candidate.key in seen:
                    continue
                seen.add(candidate.key)
                yield candidate

        logger.info(f"Topic search found {len(seen)} unique repositories")
