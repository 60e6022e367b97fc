"""
Popular repositories strategy
Star-ranked repositories handed to deep scan, which finds skills on branches
that code search never indexes
"""

import logging
from typing import AsyncIterator, List, Optional

from ..client_pool import ClientPool
from ..config import PER_PAGE, POPULAR_MAX_PAGES, POPULAR_MIN_STARS, POPULAR_STAR_BREAKPOINTS
from ..exceptions import GitHubApiError, TransportError
from ..models import RepoCandidate

logger = logging.getLogger(__name__)

MAX_RATE_LIMIT_RETRIES = 3


def build_star_ranges(min_stars: int, breakpoints: Optional[List[int]] = None) -> List[str]:
    """Split stars >= min_stars into ranges that each stay under the 1000 result window"""
    relevant = [b for b in (breakpoints or POPULAR_STAR_BREAKPOINTS) if b >= min_stars]

    ranges = []
    for i, high in enumerate(relevant):
        low = min_stars if i == 0 else relevant[i - 1]
        if low < high:
            ranges.append(f"{low}..{high}")

    last = relevant[-1] if relevant else min_stars
    ranges.append(f">{last}")
    return ranges


class PopularReposStrategy:
    name = 'popular-repos'

    def __init__(
        self,
        client_pool: ClientPool,
        min_stars: int = POPULAR_MIN_STARS,
        max_pages: int = POPULAR_MAX_PAGES,
        per_page: int = PER_PAGE,
    ):
        self.client_pool = client_pool
        self.min_stars = min_stars
        self.max_pages = max_pages
        self.per_page = per_page

    async def fetch_page(self, query: str, page: int) -> Optional[list]:
        for _ in range(MAX_RATE_LIMIT_RETRIES):
            client, _ = self.client_pool.get_best_instance()
            try:
                response = await client.search_repositories(query, page=page, per_page=self.per_page)
                return (response.data or {}).get('items', [])
            except GitHubApiError as e:
                if e.is_rate_limit:
                    logger.warning(f"    Rate limit hit on '{query}', rotating token")
                    continue
                if e.is_beyond_results_limit:
                    logger.info(f"    Reached 1000 result limit for {query}")
                else:
                    logger.warning(f"    Search failed for '{query}' page {page}: {e}")
                return None
            except TransportError as e:
                logger.warning(f"    Search failed for '{query}' page {page}: {e}")
                return None
        logger.warning(f"    Giving up on '{query}' page {page} after {MAX_RATE_LIMIT_RETRIES} retries")
        return None

    async def discover(self, seeds=None) -> AsyncIterator[RepoCandidate]:
        ranges = build_star_ranges(self.min_stars)
        logger.info(f"Discovering popular repos ({self.min_stars}+ stars) across {len(ranges)} ranges")

        seen = set()
        for star_range in ranges:
            query = f"stars:{star_range}"
            found = 0
            for page in range(1, self.max_pages + 1):
                items = await self.fetch_page(query, page)
                if items is None:
                    break

                for item in items:
                    owner = (item.get('owner') or {}).get('login')
                    repo = item.get('name')
                    if not owner or not repo or item.get('archived'):
                        continue
                    candidate = RepoCandidate(owner, repo, item.get('stargazers_count'), self.name)
                    if candidate.key in seen:
                        continue
                    seen.add(candidate.key)
                    found += 1
                    yield candidate

                if len(items) < self.per_page:
                    break

            logger.info(f"  {query}: {found} repos (total unique: {len(seen)})")
