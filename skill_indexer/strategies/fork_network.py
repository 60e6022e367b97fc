"""
Fork network strategy
Forks of known skill repositories often carry modified or additional skills
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Iterable, List, Optional

from ..client_pool import ClientPool
from ..config import FORK_INACTIVE_DAYS, FORK_MAX_PAGES, PER_PAGE
from ..exceptions import GitHubApiError, TransportError
from ..models import ForkInfo, RepoCandidate

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


def _fork_info(data: dict) -> ForkInfo:
    return ForkInfo(
        owner=data['owner']['login'],
        repo=data['name'],
        stars=data.get('stargazers_count') or 0,
        updated_at=data.get('updated_at') or '',
        is_archived=bool(data.get('archived')),
        default_branch=data.get('default_branch') or 'main',
    )


class ForkNetworkStrategy:
    name = 'fork-network'

    def __init__(self, client_pool: ClientPool, max_pages: int = FORK_MAX_PAGES,
                 per_page: int = PER_PAGE, clock=time.time):
        self.client_pool = client_pool
        self.max_pages = max_pages
        self.per_page = per_page
        self.clock = clock

    async def get_forks(self, owner: str, repo: str) -> List[ForkInfo]:
        """Forks updated within the last year; archived forks are kept"""
        cutoff = datetime.fromtimestamp(self.clock(), tz=timezone.utc) - timedelta(days=FORK_INACTIVE_DAYS)
        forks = []

        for page in range(1, self.max_pages + 1):
            client, _ = self.client_pool.get_best_instance()
            try:
                response = await client.list_forks(owner, repo, page=page, per_page=self.per_page)
            except (GitHubApiError, TransportError) as e:
                logger.warning(f"Failed to get forks page {page} for {owner}/{repo}: {e}")
                break

            items = response.data or []
            for item in items:
                try:
                    if _parse_timestamp(item.get('updated_at')) < cutoff:
                        continue
                    forks.append(_fork_info(item))
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning(f"Skipping malformed fork of {owner}/{repo}: {e}")

            if len(items) < self.per_page:
                break

        return forks

    async def get_parent_repo(self, owner: str, repo: str) -> Optional[dict]:
        client, _ = self.client_pool.get_best_instance()
        try:
            data = (await client.get_repo(owner, repo)).data or {}
        except (GitHubApiError, TransportError):
            return None
        if data.get('fork') and data.get('parent'):
            return data['parent']
        return None

    async def get_network_repos(self, owner: str, repo: str) -> List[ForkInfo]:
        """Root of the network (the parent when given a fork) plus all its forks"""
        parent = await self.get_parent_repo(owner, repo)
        if parent:
            root_owner, root_repo = parent['owner']['login'], parent['name']
        else:
            root_owner, root_repo = owner, repo

        repos = []
        seen = set()

        client, _ = self.client_pool.get_best_instance()
        try:
            root = (await client.get_repo(root_owner, root_repo)).data
            repos.append(_fork_info(root))
            seen.add(f"{root_owner}/{root_repo}".lower())
        except (GitHubApiError, TransportError, KeyError, TypeError) as e:
            logger.debug(f"Root {root_owner}/{root_repo} not accessible: {e}")

        for fork in await self.get_forks(root_owner, root_repo):
            key = f"{fork.owner}/{fork.repo}".lower()
            if key in seen:
                continue
            seen.add(key)
            repos.append(fork)

        return repos

    async def discover(self, seeds: Iterable[RepoCandidate] = ()) -> AsyncIterator[ForkInfo]:
        """Raw fork records of every seed, unique across seeds"""
        seen = set()
        for seed in seeds:
            logger.info(f"Fetching forks of {seed.owner}/{seed.repo}...")
            forks = await self.get_forks(seed.owner, seed.repo)
            logger.info(f"  Found {len(forks)} active forks")
            for fork in forks:
                key = f"{fork.owner}/{fork.repo}".lower()
                if key in seen:
                    continue
                seen.add(key)
                yield fork
