"""
Code search strategy
Finds instruction files directly with GitHub code search, one query per layout
"""

import asyncio
import logging
from typing import AsyncIterator, List, Optional

from ..client_pool import ClientPool
from ..config import CODE_SEARCH_DELAY, CODE_SEARCH_MAX_PAGES, CODE_SEARCH_QUERIES, PER_PAGE
from ..exceptions import GitHubApiError, TransportError
from ..layouts import get_pattern, match_layout, skill_dir_from_file
from ..models import SkillSource

logger = logging.getLogger(__name__)

MAX_SECONDARY_RETRIES = 3


class CodeSearchStrategy:
    name = 'code-search'

    def __init__(
        self,
        client_pool: ClientPool,
        queries: Optional[List[dict]] = None,
        max_pages: int = CODE_SEARCH_MAX_PAGES,
        per_page: int = PER_PAGE,
        delay: float = CODE_SEARCH_DELAY,
    ):
        self.client_pool = client_pool
        self.queries = queries if queries is not None else CODE_SEARCH_QUERIES
        self.max_pages = max_pages
        self.per_page = per_page
        self.delay = delay

    async def fetch_page(self, query: str, page: int) -> Optional[dict]:
        """One result page; secondary limits wait retry-after and try again"""
        for _ in range(MAX_SECONDARY_RETRIES):
            client, _ = self.client_pool.get_best_instance()
            try:
                response = await client.search_code(query, page=page, per_page=self.per_page)
                return response.data or {}
            except GitHubApiError as e:
                if e.is_secondary_rate_limit or e.status == 429:
                    logger.warning(f"  Secondary rate limit, waiting {e.retry_after}s")
                    await asyncio.sleep(e.retry_after)
                    continue
                if e.is_beyond_results_limit:
                    logger.info(f"  Reached 1000 result limit for: {query}")
                else:
                    logger.warning(f"  Code search failed for '{query}' page {page}: {e}")
                return None
            except TransportError as e:
                logger.warning(f"  Code search failed for '{query}' page {page}: {e}")
                return None
        logger.warning(f"  Giving up on '{query}' page {page} after {MAX_SECONDARY_RETRIES} retries")
        return None

    def to_source(self, item: dict, layout: str) -> Optional[SkillSource]:
        repository = item.get('repository') or {}
        owner = (repository.get('owner') or {}).get('login')
        path = item.get('path') or ''
        if not owner or not repository.get('name') or not path:
            return None

        pattern = match_layout(path)
        if pattern is None or pattern.layout != layout:
            pattern = get_pattern(layout)
            if not (path == pattern.filename or path.endswith('/' + pattern.filename)):
                return None

        return SkillSource(
            owner=owner,
            repo=repository['name'],
            path=skill_dir_from_file(path, pattern.filename),
            layout=pattern.layout,
        )

    async def discover(self, seeds=None) -> AsyncIterator[SkillSource]:
        seen = set()
        requests_made = 0
        for entry in self.queries:
            query, layout = entry['query'], entry['layout']
            logger.info(f"Code search [{entry['label']}]: {query}")

            for page in range(1, self.max_pages + 1):
                if requests_made:
                    await asyncio.sleep(self.delay)
                requests_made += 1

                data = await self.fetch_page(query, page)
                if data is None:
                    break

                items = data.get('items', [])
                for item in items:
                    source = self.to_source(item, layout)
                    if source is None or source.dedup_key in seen:
                        continue
                    seen.add(source.dedup_key)
                    yield source

                if len(items) < self.per_page:
                    break

        logger.info(f"Code search found {len(seen)} instruction files")
