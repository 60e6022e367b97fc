"""
Pytest configuration and fixtures for skill_indexer tests.
"""

import base64

import pytest

from skill_indexer.client_pool import ClientPool
from skill_indexer.exceptions import GitHubApiError
from skill_indexer.github_client import GitHubResponse
from skill_indexer.models import RepoMetadata, SkillContent
from skill_indexer.store import JsonFileStore
from skill_indexer.token_pool import TokenPool

SKILL_MD = """---
name: pdf-tools
description: Extract text and tables from PDF documents with ease
version: 1.2.0
license: MIT
---

# PDF Tools

Use this skill to work with PDF files. It covers text extraction,
table parsing and merging documents.

## Usage

```bash
python scripts/extract.py input.pdf
```
"""

CURSORRULES = """You are an expert TypeScript developer.

Always use strict mode, prefer functional components, and write unit tests
for every new module. Keep functions small and name things clearly.
"""


def not_found() -> GitHubApiError:
    return GitHubApiError(404, 'Not Found')


def file_payload(text: str, path: str = 'SKILL.md') -> dict:
    return {
        'type': 'file',
        'name': path.rsplit('/', 1)[-1],
        'path': path,
        'encoding': 'base64',
        'content': base64.b64encode(text.encode('utf-8')).decode('ascii'),
    }


def make_content(skill_md: str = SKILL_MD, resolved_path: str = 'skills/pdf-tools/SKILL.md',
                 branch: str = 'main', description=None) -> SkillContent:
    return SkillContent(
        skill_md=skill_md,
        repo_meta=RepoMetadata(
            stars=42,
            forks=3,
            license='MIT',
            description=description,
            updated_at='2026-09-01T00:00:00Z',
            default_branch='main',
            topics=['claude-skills'],
        ),
        branch=branch,
        resolved_path=resolved_path,
    )


class FakeGitHubClient:
    """In-memory stand-in for GitHubClient; missing entries answer 404"""

    def __init__(self):
        self.contents = {}      # (owner, repo, path) -> data | Exception
        self.repos = {}         # 'owner/repo' -> data | Exception
        self.forks = {}         # 'owner/repo' -> [fork items] | Exception
        self.repo_search = {}   # query -> [page items | Exception, ...]
        self.code_search = {}   # query -> [response data | Exception, ...] consumed in order
        self.commit_search = {}  # query -> [page items | Exception, ...]
        self.trees = {}         # (owner, repo, ref) -> data | Exception
        self.branches = {}      # 'owner/repo' -> [names] | Exception
        self.rate_limit = {'limit': 5000, 'remaining': 4000, 'reset': 9999999999}
        self.calls = []
        self.closed = False

    @staticmethod
    def _respond(value):
        if isinstance(value, Exception):
            raise value
        return GitHubResponse(data=value, headers={})

    async def get_content(self, owner, repo, path, ref=None):
        self.calls.append(('get_content', owner, repo, path, ref))
        return self._respond(self.contents.get((owner, repo, path), not_found()))

    async def get_repo(self, owner, repo):
        self.calls.append(('get_repo', owner, repo))
        return self._respond(self.repos.get(f"{owner}/{repo}", not_found()))

    async def list_forks(self, owner, repo, page=1, per_page=100):
        self.calls.append(('list_forks', owner, repo, page))
        items = self.forks.get(f"{owner}/{repo}", [])
        if isinstance(items, Exception):
            raise items
        start = (page - 1) * per_page
        return self._respond(items[start:start + per_page])

    async def search_repositories(self, query, page=1, per_page=100, sort='stars'):
        self.calls.append(('search_repositories', query, page))
        pages = self.repo_search.get(query, [])
        items = pages[page - 1] if page <= len(pages) else []
        if isinstance(items, Exception):
            raise items
        total = sum(len(p) for p in pages if isinstance(p, list))
        return self._respond({'total_count': total, 'items': items})

    async def search_commits(self, query, page=1, per_page=100):
        self.calls.append(('search_commits', query, page))
        pages = self.commit_search.get(query, [])
        items = pages[page - 1] if page <= len(pages) else []
        if isinstance(items, Exception):
            raise items
        return self._respond({'total_count': len(items), 'items': items})

    async def search_code(self, query, page=1, per_page=100):
        self.calls.append(('search_code', query, page))
        responses = self.code_search.get(query, [])
        return self._respond(responses.pop(0) if responses else {'items': []})

    async def get_tree(self, owner, repo, ref, recursive=True):
        self.calls.append(('get_tree', owner, repo, ref))
        return self._respond(self.trees.get((owner, repo, ref), not_found()))

    async def list_branches(self, owner, repo, per_page=100):
        self.calls.append(('list_branches', owner, repo))
        names = self.branches.get(f"{owner}/{repo}", [])
        if isinstance(names, Exception):
            raise names
        return names

    async def get_rate_limit(self):
        return self.rate_limit

    async def close(self):
        self.closed = True


class CountingStore(JsonFileStore):
    """JsonFileStore that remembers its mutating calls"""

    def __init__(self, path):
        super().__init__(path)
        self.upserts = []
        self.security_updates = []

    async def upsert(self, record):
        self.upserts.append(record)
        await super().upsert(record)

    async def update_security(self, skill_id, score, status, review_status, last_scanned):
        self.security_updates.append((skill_id, score, status, review_status))
        await super().update_security(skill_id, score, status, review_status, last_scanned)


class FakeIndex:
    def __init__(self, error=None, fail_on_batch=None):
        self.batches = []
        self.deleted = []
        self.settings = {}
        self.error = error
        self.fail_on_batch = fail_on_batch

    def add_documents(self, documents):
        if self.error is not None and self.fail_on_batch in (None, len(self.batches) + 1):
            raise self.error
        self.batches.append(documents)

    def delete_document(self, document_id):
        self.deleted.append(document_id)

    def update_searchable_attributes(self, attributes):
        self.settings['searchable'] = attributes

    def update_filterable_attributes(self, attributes):
        self.settings['filterable'] = attributes

    def update_sortable_attributes(self, attributes):
        self.settings['sortable'] = attributes

    def update_ranking_rules(self, rules):
        self.settings['ranking'] = rules


class FakeMeiliClient:
    def __init__(self, index=None):
        self.index_obj = index or FakeIndex()
        self.get_index_calls = 0

    def get_index(self, uid):
        self.get_index_calls += 1
        return self.index_obj

    def create_index(self, uid, options=None):
        return self.index_obj

    def index(self, uid):
        return self.index_obj

    def health(self):
        return {'status': 'available'}


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def send_indexed_notification(self, address, locale, details):
        self.sent.append((address, locale, details))
        return True


class FakeFetcher:
    """Maps 'owner/repo' to SkillContent or an exception to raise"""

    def __init__(self, results=None):
        self.results = results or {}
        self.fetched = []

    async def fetch(self, source):
        self.fetched.append(source)
        result = self.results[source.full_name]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def github() -> FakeGitHubClient:
    """Provide a fake GitHub client shared by every token."""
    return FakeGitHubClient()


@pytest.fixture
def client_pool(github) -> ClientPool:
    """Provide a client pool whose clients are all the fake."""
    return ClientPool(TokenPool(['test-token']), client_factory=lambda credential, on_headers=None: github)


@pytest.fixture
def store(tmp_path) -> CountingStore:
    """Provide an empty JSON store in a temp directory."""
    return CountingStore(str(tmp_path / 'skills-store.json'))


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()
