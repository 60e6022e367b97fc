"""
Deep scan strategy
Walks git trees of a repository's important branches looking for instruction files
"""

import logging
import re
from typing import AsyncIterator, Dict, Iterable, List, Optional

from ..client_pool import ClientPool
from ..config import IMPORTANT_BRANCH_NAMES, IMPORTANT_BRANCH_PREFIXES, MAX_EXTRA_BRANCHES
from ..exceptions import GitHubApiError, TransportError
from ..layouts import INSTRUCTION_FILE_PATTERNS, SKILL_DIR_PREFIXES, match_layout, skill_dir_from_file
from ..models import DEFAULT_LAYOUT, RepoCandidate, SkillSource

logger = logging.getLogger(__name__)

VERSION_BRANCH = re.compile(r'^[vV]\d')


def _version_key(name: str) -> List[int]:
    parts = re.split(r'[.\-x]', re.sub(r'^[vV]', '', name))
    key = []
    for part in parts:
        digits = re.match(r'\d+', part)
        key.append(int(digits.group()) if digits else 0)
    return key


def filter_and_sort_branches(
    branch_names: Iterable[str],
    default_branch: str,
    extra_patterns: Optional[List[str]] = None,
) -> List[str]:
    """
    Default branch first, then at most MAX_EXTRA_BRANCHES others:
    well-known names, release prefixes and extra patterns in listing order,
    followed by v* branches newest version first.
    """
    extra_patterns = extra_patterns or []
    important = []
    versions = []

    for name in branch_names:
        if name == default_branch:
            continue
        if name in IMPORTANT_BRANCH_NAMES:
            important.append(name)
        elif any(name.lower().startswith(p) for p in IMPORTANT_BRANCH_PREFIXES):
            important.append(name)
        elif VERSION_BRANCH.match(name):
            versions.append(name)
        elif any(name == p or name.startswith(p + '/') for p in extra_patterns):
            important.append(name)

    versions.sort(key=_version_key, reverse=True)
    extra = (important + versions[:MAX_EXTRA_BRANCHES])[:MAX_EXTRA_BRANCHES]
    return [default_branch] + extra


class DeepScanStrategy:
    name = 'deep-scan'

    def __init__(self, client_pool: ClientPool, extra_branch_patterns: Optional[List[str]] = None):
        self.client_pool = client_pool
        self.extra_branch_patterns = extra_branch_patterns or []

    async def list_important_branches(self, owner: str, repo: str, default_branch: str) -> List[str]:
        client, _ = self.client_pool.get_best_instance()
        try:
            names = await client.list_branches(owner, repo)
        except (GitHubApiError, TransportError):
            logger.info(f"  Could not list branches for {owner}/{repo}, using default only")
            return [default_branch]
        return filter_and_sort_branches(names, default_branch, self.extra_branch_patterns)

    async def scan_branch(self, owner: str, repo: str, branch: str) -> Optional[List[SkillSource]]:
        """Sources found on one branch; None when the tree is truncated"""
        client, _ = self.client_pool.get_best_instance()
        try:
            response = await client.get_tree(owner, repo, branch)
        except GitHubApiError as e:
            if e.is_not_found:
                return []
            raise

        tree = response.data or {}
        if tree.get('truncated'):
            return None

        sources = []
        for item in tree.get('tree', []):
            if item.get('type') != 'blob' or not item.get('path'):
                continue
            pattern = match_layout(item['path'])
            if pattern is None:
                continue
            sources.append(SkillSource(
                owner=owner,
                repo=repo,
                path=skill_dir_from_file(item['path'], pattern.filename),
                branch=branch,
                layout=pattern.layout,
            ))
        return sources

    async def _list_dir(self, owner: str, repo: str, path: str, ref: str) -> list:
        client, _ = self.client_pool.get_best_instance()
        try:
            response = await client.get_content(owner, repo, path, ref=ref)
        except GitHubApiError as e:
            if e.is_not_found:
                return []
            raise
        return response.data if isinstance(response.data, list) else []

    async def fallback_scan(self, owner: str, repo: str, default_branch: str) -> List[SkillSource]:
        """Probe well-known skill directories when the tree is too large to list"""
        sources = []
        root_entries = await self._list_dir(owner, repo, '', default_branch)

        for base in [p.rstrip('/') for p in SKILL_DIR_PREFIXES] + ['']:
            if base:
                entries = await self._list_dir(owner, repo, base, default_branch)
            else:
                entries = root_entries
            if any(e.get('name') == 'SKILL.md' for e in entries):
                sources.append(SkillSource(owner, repo, base or '.', default_branch, DEFAULT_LAYOUT))
            for entry in entries:
                if entry.get('type') != 'dir':
                    continue
                children = await self._list_dir(owner, repo, entry['path'], default_branch)
                if any(c.get('name') == 'SKILL.md' for c in children):
                    sources.append(SkillSource(owner, repo, entry['path'], default_branch, DEFAULT_LAYOUT))

        root_names = {e.get('path') for e in root_entries}
        github_names = {e.get('path') for e in await self._list_dir(owner, repo, '.github', default_branch)}
        for pattern in INSTRUCTION_FILE_PATTERNS:
            if pattern.layout == DEFAULT_LAYOUT:
                continue
            location = (pattern.path_filter or '') + pattern.filename
            if location in root_names or location in github_names:
                sources.append(SkillSource(owner, repo, '.', default_branch, pattern.layout))

        return sources

    async def scan_repository(self, owner: str, repo: str) -> List[SkillSource]:
        client, _ = self.client_pool.get_best_instance()
        try:
            info = (await client.get_repo(owner, repo)).data or {}
        except GitHubApiError as e:
            if e.is_not_found:
                return []
            raise

        if info.get('archived'):
            logger.info(f"  Skipping archived repo: {owner}/{repo}")
            return []

        default_branch = info.get('default_branch') or 'main'
        branches = await self.list_important_branches(owner, repo, default_branch)
        if len(branches) > 1:
            logger.info(f"  Scanning {len(branches)} branches: {', '.join(branches)}")

        by_key: Dict[str, SkillSource] = {}
        for branch in branches:
            found = await self.scan_branch(owner, repo, branch)
            if found is None:
                if branch == default_branch:
                    logger.info(f"  Repository {owner}/{repo} is too large, using fallback scan")
                    found = await self.fallback_scan(owner, repo, default_branch)
                else:
                    continue

            for source in found:
                key = f"{source.path}::{source.layout}"
                existing = by_key.get(key)
                if existing is None or (existing.branch != default_branch and source.branch == default_branch):
                    by_key[key] = source

        sources = list(by_key.values())
        if sources:
            off_default = sum(1 for s in sources if s.branch != default_branch)
            logger.info(f"  Found {len(sources)} skills in {owner}/{repo} ({off_default} on non-default branches)")
        return sources

    async def discover(self, seeds: Iterable[RepoCandidate] = ()) -> AsyncIterator[SkillSource]:
        for candidate in seeds:
            logger.info(f"Deep scanning: {candidate.owner}/{candidate.repo}")
            try:
                sources = await self.scan_repository(candidate.owner, candidate.repo)
            except (GitHubApiError, TransportError) as e:
                logger.warning(f"  Failed to scan {candidate.owner}/{candidate.repo}: {e}")
                continue
            for source in sources:
                yield source
