"""
GitHub REST API client
One aiohttp session per credential; every response reports its rate limit headers
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional

import aiohttp

from .config import API_TIMEOUT, GITHUB_API_BASE, PER_PAGE, USER_AGENT
from .exceptions import GitHubApiError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class GitHubResponse:
    data: Any
    headers: Mapping[str, str]


class GitHubClient:
    """Thin async wrapper over the GitHub REST endpoints the indexer uses"""

    def __init__(
        self,
        token: str,
        on_headers: Optional[Callable[[str, Mapping], None]] = None,
        base_url: str = GITHUB_API_BASE,
        timeout: float = API_TIMEOUT,
    ):
        self.token = token
        self.on_headers = on_headers
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {
                'Authorization': f'token {self.token}',
                'Accept': 'application/vnd.github.v3+json',
                'User-Agent': USER_AGENT,
            }
            self._session = aiohttp.ClientSession(headers=headers)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def request(self, path: str, params: Optional[dict] = None) -> GitHubResponse:
        url = path if path.startswith('http') else f"{self.base_url}{path}"
        session = self._get_session()

        try:
            async with session.get(
                url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                headers = {k.lower(): v for k, v in resp.headers.items()}
                if self.on_headers is not None:
                    self.on_headers(self.token, headers)

                if resp.status >= 400:
                    try:
                        body = await resp.json(content_type=None)
                        message = body.get('message', '') if isinstance(body, dict) else str(body)
                    except (aiohttp.ContentTypeError, ValueError):
                        message = await resp.text()
                    raise GitHubApiError(resp.status, message or resp.reason or '', headers)

                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise GitHubApiError(resp.status, f"Invalid JSON body: {e}", headers) from e
                return GitHubResponse(data=data, headers=headers)

        except asyncio.TimeoutError as e:
            raise TransportError(f"Timeout after {self.timeout}s: {url}") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Request failed: {url}: {e}") from e

    async def get_content(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> GitHubResponse:
        """Contents API: a file object or a directory listing"""
        params = {'ref': ref} if ref else None
        return await self.request(f"/repos/{owner}/{repo}/contents/{path}", params)

    async def get_repo(self, owner: str, repo: str) -> GitHubResponse:
        return await self.request(f"/repos/{owner}/{repo}")

    async def list_forks(self, owner: str, repo: str, page: int = 1, per_page: int = PER_PAGE) -> GitHubResponse:
        params = {'sort': 'stargazers', 'per_page': per_page, 'page': page}
        return await self.request(f"/repos/{owner}/{repo}/forks", params)

    async def search_repositories(self, query: str, page: int = 1, per_page: int = PER_PAGE,
                                  sort: str = 'stars') -> GitHubResponse:
        params = {'q': query, 'sort': sort, 'order': 'desc', 'per_page': per_page, 'page': page}
        return await self.request("/search/repositories", params)

    async def search_code(self, query: str, page: int = 1, per_page: int = PER_PAGE) -> GitHubResponse:
        params = {'q': query, 'per_page': per_page, 'page': page}
        return await self.request("/search/code", params)

    async def search_commits(self, query: str, page: int = 1, per_page: int = PER_PAGE) -> GitHubResponse:
        params = {'q': query, 'sort': 'committer-date', 'order': 'desc', 'per_page': per_page, 'page': page}
        return await self.request("/search/commits", params)

    async def get_tree(self, owner: str, repo: str, ref: str, recursive: bool = True) -> GitHubResponse:
        params = {'recursive': '1'} if recursive else None
        return await self.request(f"/repos/{owner}/{repo}/git/trees/{ref}", params)

    async def list_branches(self, owner: str, repo: str, per_page: int = PER_PAGE) -> List[str]:
        response = await self.request(f"/repos/{owner}/{repo}/branches", {'per_page': per_page})
        return [b['name'] for b in response.data or []]

    async def get_rate_limit(self) -> dict:
        response = await self.request("/rate_limit")
        return (response.data or {}).get('resources', {}).get('core', {})
