"""
Skill content fetcher
Resolves a SkillSource to its instruction file, scripts and references
"""

import asyncio
import base64
import logging
import os
from dataclasses import dataclass
from typing import Any, List, Optional

import requests

from .client_pool import ClientPool
from .config import GITHUB_RAW_BASE, RAW_TIMEOUT, REFERENCE_EXTENSIONS, REFERENCE_MAX_BYTES, SCRIPT_EXTENSIONS, USER_AGENT
from .exceptions import FetchFailed, FetchUnavailable, GitHubApiError, NotFound, TransportError
from .layouts import candidate_paths, get_pattern, join_path, skill_dir_from_file
from .models import DEFAULT_LAYOUT, FileInfo, ReferenceFile, RepoMetadata, ScriptFile, SkillContent, SkillSource

logger = logging.getLogger(__name__)


@dataclass
class FetchedFile:
    """A file as one of the two transports returned it"""
    path: str
    via: str  # 'api' or 'raw_fallback'
    payload: Any  # contents API object for 'api', bytes for 'raw_fallback'


def is_file_payload(payload: Any) -> bool:
    return isinstance(payload, dict) and payload.get('type', 'file') == 'file' and 'content' in payload


def decode_file(fetched: FetchedFile) -> str:
    """Text of a fetched file regardless of transport"""
    if fetched.via == 'raw_fallback':
        data = fetched.payload
    elif fetched.via == 'api':
        if not is_file_payload(fetched.payload):
            raise FetchFailed(f"Path {fetched.path} is not a file")
        encoding = fetched.payload.get('encoding', 'base64')
        content = fetched.payload['content'] or ''
        if encoding != 'base64':
            return content
        data = base64.b64decode(content)
    else:
        raise FetchFailed(f"Unknown transport '{fetched.via}' for {fetched.path}")

    return data.decode('utf-8', errors='replace')


class ContentFetcher:
    def __init__(self, client_pool: ClientPool, session: Optional[requests.Session] = None):
        self.client_pool = client_pool
        self.session = session or requests.Session()
        self.session.headers.setdefault('User-Agent', USER_AGENT)

    def _get_raw(self, owner: str, repo: str, ref: str, path: str) -> bytes:
        url = f"{GITHUB_RAW_BASE}/{owner}/{repo}/{ref}/{path}"
        response = self.session.get(url, timeout=RAW_TIMEOUT)
        response.raise_for_status()
        return response.content

    async def fetch_raw(self, owner: str, repo: str, ref: str, path: str) -> FetchedFile:
        try:
            data = await asyncio.to_thread(self._get_raw, owner, repo, ref, path)
        except requests.RequestException as e:
            raise FetchUnavailable(f"API and raw fallback both failed for {owner}/{repo}/{path}: {e}") from e
        return FetchedFile(path=path, via='raw_fallback', payload=data)

    async def fetch_file(self, owner: str, repo: str, path: str, ref: str) -> Optional[FetchedFile]:
        """
        One path through the contents API.

        None when the path does not exist or is not a file. A transport
        failure gets exactly one raw-content attempt.
        """
        client, _ = self.client_pool.get_best_instance()
        try:
            response = await client.get_content(owner, repo, path, ref=ref)
        except GitHubApiError as e:
            if e.is_not_found:
                return None
            raise FetchFailed(f"{owner}/{repo}/{path}: {e}") from e
        except TransportError as e:
            logger.warning(f"API transport failed for {owner}/{repo}/{path}, trying raw content: {e}")
            return await self.fetch_raw(owner, repo, ref, path)

        if not is_file_payload(response.data):
            return None
        return FetchedFile(path=path, via='api', payload=response.data)

    async def get_repo_metadata(self, owner: str, repo: str) -> RepoMetadata:
        client, _ = self.client_pool.get_best_instance()
        try:
            response = await client.get_repo(owner, repo)
        except GitHubApiError as e:
            if e.is_not_found:
                raise NotFound(f"Repository {owner}/{repo} not found", attempts=0) from e
            raise FetchFailed(f"{owner}/{repo}: {e}") from e
        except TransportError as e:
            raise FetchUnavailable(f"Repository metadata unavailable for {owner}/{repo}: {e}") from e
        return RepoMetadata.from_api(response.data or {})

    async def resolve(self, source: SkillSource, ref: str) -> FetchedFile:
        """First candidate path that exists wins; NotFound once all are exhausted"""
        paths = candidate_paths(source)
        for attempt, path in enumerate(paths, start=1):
            fetched = await self.fetch_file(source.owner, source.repo, path, ref)
            if fetched is not None:
                if attempt > 1:
                    logger.info(f"Resolved {source} at {path}")
                return fetched

        raise NotFound(f"No {get_pattern(source.layout).filename} found for {source}", attempts=len(paths))

    async def list_directory(self, owner: str, repo: str, path: str, ref: str) -> List[FileInfo]:
        client, _ = self.client_pool.get_best_instance()
        try:
            response = await client.get_content(owner, repo, path, ref=ref)
        except GitHubApiError as e:
            if e.is_not_found:
                return []
            raise FetchFailed(f"{owner}/{repo}/{path}: {e}") from e
        except TransportError as e:
            logger.warning(f"Could not list {owner}/{repo}/{path}: {e}")
            return []

        if not isinstance(response.data, list):
            return []
        return [
            FileInfo(name=item['name'], path=item['path'], type=item['type'], size=item.get('size') or 0)
            for item in response.data
        ]

    async def _read_optional(self, owner: str, repo: str, path: str, ref: str) -> Optional[str]:
        try:
            fetched = await self.fetch_file(owner, repo, path, ref)
        except (FetchFailed, FetchUnavailable) as e:
            logger.debug(f"Skipping {owner}/{repo}/{path}: {e}")
            return None
        return decode_file(fetched) if fetched else None

    async def fetch_scripts(self, owner: str, repo: str, skill_dir: str, ref: str,
                            files: List[FileInfo]) -> List[ScriptFile]:
        if not any(f.name == 'scripts' and f.type == 'dir' for f in files):
            return []

        scripts = []
        for file in await self.list_directory(owner, repo, join_path(skill_dir, 'scripts'), ref):
            ext = os.path.splitext(file.name)[1]
            if file.type != 'file' or ext not in SCRIPT_EXTENSIONS:
                continue
            content = await self._read_optional(owner, repo, file.path, ref)
            if content is not None:
                scripts.append(ScriptFile(file.name, file.path, content, SCRIPT_EXTENSIONS[ext]))
        return scripts

    async def fetch_references(self, owner: str, repo: str, skill_dir: str, ref: str,
                               files: List[FileInfo]) -> List[ReferenceFile]:
        if not any(f.name == 'references' and f.type == 'dir' for f in files):
            return []

        references = []
        for file in await self.list_directory(owner, repo, join_path(skill_dir, 'references'), ref):
            ext = os.path.splitext(file.name)[1]
            if file.type != 'file' or ext not in REFERENCE_EXTENSIONS:
                continue
            if file.size > REFERENCE_MAX_BYTES:
                logger.debug(f"Skipping large reference {file.path} ({file.size} bytes)")
                continue
            content = await self._read_optional(owner, repo, file.path, ref)
            if content is not None:
                references.append(ReferenceFile(file.name, file.path, content))
        return references

    async def fetch(self, source: SkillSource) -> SkillContent:
        repo_meta = await self.get_repo_metadata(source.owner, source.repo)
        ref = source.branch or repo_meta.default_branch

        fetched = await self.resolve(source, ref)
        content = SkillContent(
            skill_md=decode_file(fetched),
            repo_meta=repo_meta,
            branch=ref,
            resolved_path=fetched.path,
            via=fetched.via,
        )

        if source.layout != DEFAULT_LAYOUT:
            return content

        skill_dir = skill_dir_from_file(fetched.path, get_pattern(source.layout).filename)
        skill_dir = '' if skill_dir == '.' else skill_dir
        content.files = await self.list_directory(source.owner, source.repo, skill_dir, ref)
        content.scripts = await self.fetch_scripts(source.owner, source.repo, skill_dir, ref, content.files)
        content.references = await self.fetch_references(source.owner, source.repo, skill_dir, ref, content.files)
        return content
