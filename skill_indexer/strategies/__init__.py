"""
Discovery strategies and the orchestrator that runs them
"""

import logging
import time
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from ..client_pool import ClientPool
from ..config import FORK_SEED_LIMIT, FORK_SEED_MIN_STARS
from ..models import RepoCandidate, SkillSource
from .awesome_list import AwesomeListStrategy, extract_github_repos
from .code_search import CodeSearchStrategy
from .commits_search import CommitsSearchStrategy
from .deep_scan import DeepScanStrategy, filter_and_sort_branches
from .fork_network import ForkNetworkStrategy
from .popular_repos import PopularReposStrategy, build_star_ranges
from .topic_search import TopicSearchStrategy

logger = logging.getLogger(__name__)

__all__ = [
    'AwesomeListStrategy',
    'CodeSearchStrategy',
    'CommitsSearchStrategy',
    'DeepScanStrategy',
    'ForkNetworkStrategy',
    'PopularReposStrategy',
    'StrategyOrchestrator',
    'TopicSearchStrategy',
    'build_star_ranges',
    'extract_github_repos',
    'filter_and_sort_branches',
]


class StrategyOrchestrator:
    """Run the discovery strategies in order and merge their candidates"""

    def __init__(
        self,
        client_pool: ClientPool,
        awesome: Optional[AwesomeListStrategy] = None,
        topic: Optional[TopicSearchStrategy] = None,
        fork: Optional[ForkNetworkStrategy] = None,
        deep: Optional[DeepScanStrategy] = None,
        code: Optional[CodeSearchStrategy] = None,
        popular: Optional[PopularReposStrategy] = None,
        commits: Optional[CommitsSearchStrategy] = None,
    ):
        self.awesome = awesome or AwesomeListStrategy(client_pool)
        self.topic = topic or TopicSearchStrategy(client_pool)
        self.fork = fork or ForkNetworkStrategy(client_pool)
        self.deep = deep or DeepScanStrategy(client_pool)
        self.code = code or CodeSearchStrategy(client_pool)
        self.popular = popular or PopularReposStrategy(client_pool)
        self.commits = commits or CommitsSearchStrategy(client_pool)

    async def _consume(self, name: str, stream: AsyncIterator, accept: Callable) -> dict:
        """Drain one strategy; a failure ends it but keeps what it already yielded"""
        logger.info(f"=== Running {name} strategy ===")
        start = time.monotonic()
        yielded = 0
        accepted = 0
        error = None

        try:
            async for item in stream:
                yielded += 1
                if accept(item):
                    accepted += 1
        except Exception as e:
            error = str(e)
            logger.error(f"Strategy {name} failed after {yielded} items: {e}")

        elapsed = round(time.monotonic() - start, 2)
        logger.info(f"{name}: {accepted} new of {yielded} found in {elapsed}s")
        return {'found': yielded, 'new': accepted, 'elapsed': elapsed, 'error': error}

    @staticmethod
    def select_fork_seeds(candidates: List[RepoCandidate]) -> List[RepoCandidate]:
        starred = [c for c in candidates if (c.stars or 0) >= FORK_SEED_MIN_STARS]
        starred.sort(key=lambda c: c.stars or 0, reverse=True)
        return starred[:FORK_SEED_LIMIT]

    async def run_all(self, include_popular: bool = False,
                      include_commits: bool = False) -> Tuple[List[RepoCandidate], dict]:
        """
        Awesome lists, topic search, then forks of the best candidates so far.
        Popular repos and commit search run last when enabled, so they never
        seed the fork network.
        """
        start = time.monotonic()
        repos: Dict[str, RepoCandidate] = {}
        stats = {'by_strategy': {}}

        def add(candidate: RepoCandidate) -> bool:
            if candidate.key in repos:
                return False
            repos[candidate.key] = candidate
            return True

        stats['by_strategy'][self.awesome.name] = await self._consume(
            self.awesome.name, self.awesome.discover(), add)
        stats['by_strategy'][self.topic.name] = await self._consume(
            self.topic.name, self.topic.discover(), add)

        seeds = self.select_fork_seeds(list(repos.values()))
        logger.info(f"Seeding fork network with {len(seeds)} repositories")

        def add_fork(fork) -> bool:
            if fork.is_archived:
                return False
            return add(RepoCandidate(fork.owner, fork.repo, fork.stars, self.fork.name))

        stats['by_strategy'][self.fork.name] = await self._consume(
            self.fork.name, self.fork.discover(seeds), add_fork)

        optional = [(include_popular, self.popular), (include_commits, self.commits)]
        for enabled, strategy in optional:
            if enabled:
                stats['by_strategy'][strategy.name] = await self._consume(
                    strategy.name, strategy.discover(), add)

        stats['total_repos'] = len(repos)
        stats['duration'] = round(time.monotonic() - start, 2)
        logger.info(f"Discovery complete: {len(repos)} unique repositories in {stats['duration']}s")
        return list(repos.values()), stats

    async def run_deep_scan(self, candidates: List[RepoCandidate]) -> Tuple[List[SkillSource], dict]:
        sources: Dict[str, SkillSource] = {}

        def add(source: SkillSource) -> bool:
            if source.dedup_key in sources:
                return False
            sources[source.dedup_key] = source
            return True

        stats = await self._consume(self.deep.name, self.deep.discover(candidates), add)
        return list(sources.values()), stats

    async def run_code_search(self) -> Tuple[List[SkillSource], dict]:
        sources: List[SkillSource] = []

        def add(source: SkillSource) -> bool:
            sources.append(source)
            return True

        stats = await self._consume(self.code.name, self.code.discover(), add)
        return sources, stats

    async def discover_sources(self, include_code_search: bool = False, include_popular: bool = False,
                               include_commits: bool = False) -> Tuple[List[SkillSource], dict]:
        """Candidates from every repo strategy, deep scanned into skill sources"""
        candidates, stats = await self.run_all(include_popular, include_commits)
        sources, deep_stats = await self.run_deep_scan(candidates)
        stats['by_strategy'][self.deep.name] = deep_stats

        if include_code_search:
            found, code_stats = await self.run_code_search()
            stats['by_strategy'][self.code.name] = code_stats
            known = {s.dedup_key for s in sources}
            for source in found:
                if source.dedup_key not in known:
                    known.add(source.dedup_key)
                    sources.append(source)

        stats['total_sources'] = len(sources)
        return sources, stats
