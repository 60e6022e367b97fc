"""
Awesome list strategy
Mines curated README files for github.com/owner/repo links
"""

import base64
import logging
import re
from typing import AsyncIterator, List, Optional

from ..client_pool import ClientPool
from ..config import KNOWN_AWESOME_LISTS
from ..exceptions import GitHubApiError, TransportError
from ..models import RepoCandidate

logger = logging.getLogger(__name__)

GITHUB_REPO_PATTERN = re.compile(r'github\.com/([a-zA-Z0-9_-]+)/([a-zA-Z0-9_.-]+)')

# Path segments that look like repos in links but are not
PSEUDO_REPOS = {'issues', 'pulls', 'blob', 'tree', 'raw', 'releases'}


def extract_github_repos(content: str) -> List[RepoCandidate]:
    """Unique repository references in markdown, in order of appearance"""
    repos = []
    seen = set()

    for match in GITHUB_REPO_PATTERN.finditer(content or ''):
        owner = match.group(1)
        repo = match.group(2).rstrip('/')
        repo = re.sub(r'\.git$', '', repo).split('#')[0]

        if not owner or not repo or repo in PSEUDO_REPOS:
            continue

        candidate = RepoCandidate(owner=owner, repo=repo, discovered_via='awesome-list')
        if candidate.key in seen:
            continue
        seen.add(candidate.key)
        repos.append(candidate)

    return repos


class AwesomeListStrategy:
    name = 'awesome-list'

    def __init__(self, client_pool: ClientPool, lists: Optional[List[dict]] = None):
        self.client_pool = client_pool
        self.lists = lists if lists is not None else KNOWN_AWESOME_LISTS

    async def fetch_readme(self, owner: str, repo: str, readme: str = 'README.md') -> str:
        client, _ = self.client_pool.get_best_instance()
        response = await client.get_content(owner, repo, readme)
        data = response.data
        if not isinstance(data, dict) or 'content' not in data:
            return ''
        return base64.b64decode(data['content']).decode('utf-8', errors='replace')

    async def discover(self, seeds=None) -> AsyncIterator[RepoCandidate]:
        for entry in self.lists:
            owner, repo = entry['owner'], entry['repo']
            logger.info(f"Parsing awesome list: {owner}/{repo}")
            try:
                content = await self.fetch_readme(owner, repo, entry.get('readme', 'README.md'))
            except (GitHubApiError, TransportError) as e:
                logger.warning(f"Failed to parse {owner}/{repo}: {e}")
                continue

            found = extract_github_repos(content)
            logger.info(f"  Found {len(found)} repository references")
            for candidate in found:
                yield candidate
