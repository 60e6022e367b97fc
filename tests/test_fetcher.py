"""Unit tests for the content fetcher."""

import pytest
import requests

from skill_indexer.exceptions import FetchFailed, FetchUnavailable, GitHubApiError, NotFound, TransportError
from skill_indexer.fetcher import ContentFetcher, FetchedFile, decode_file
from skill_indexer.models import SkillSource

from conftest import CURSORRULES, SKILL_MD, file_payload


class FakeRawResponse:
    def __init__(self, content=b'', status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeRawSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def repo(github):
    github.repos['acme/skills'] = {'default_branch': 'main', 'stargazers_count': 12, 'forks_count': 2}
    return github


def fetcher_for(client_pool, session=None):
    return ContentFetcher(client_pool, session=session or FakeRawSession())


class TestDecodeFile:
    """Tests for decode_file."""

    def test_decodes_api_payload(self):
        fetched = FetchedFile('SKILL.md', 'api', file_payload('héllo'))
        assert decode_file(fetched) == 'héllo'

    def test_decodes_raw_bytes(self):
        assert decode_file(FetchedFile('SKILL.md', 'raw_fallback', b'plain')) == 'plain'

    def test_rejects_directory_payload(self):
        with pytest.raises(FetchFailed):
            decode_file(FetchedFile('skills', 'api', [{'name': 'a'}]))

    def test_rejects_unknown_transport(self):
        with pytest.raises(FetchFailed):
            decode_file(FetchedFile('SKILL.md', 'carrier-pigeon', b''))


class TestResolve:
    """Tests for candidate path resolution."""

    @pytest.mark.asyncio
    async def test_advances_past_404_to_next_candidate(self, client_pool, repo):
        repo.contents[('acme', 'skills', 'skills/pdf/SKILL.md')] = file_payload(SKILL_MD, 'skills/pdf/SKILL.md')
        fetcher = fetcher_for(client_pool)

        content = await fetcher.fetch(SkillSource('acme', 'skills', 'pdf'))

        assert content.resolved_path == 'skills/pdf/SKILL.md'
        assert content.skill_md == SKILL_MD
        assert content.branch == 'main'
        assert content.via == 'api'
        assert content.repo_meta.stars == 12

    @pytest.mark.asyncio
    async def test_not_found_reports_attempts(self, client_pool, repo):
        fetcher = fetcher_for(client_pool)

        with pytest.raises(NotFound) as exc_info:
            await fetcher.fetch(SkillSource('acme', 'skills', 'pdf'))
        assert exc_info.value.attempts == 4

    @pytest.mark.asyncio
    async def test_directory_at_candidate_path_is_skipped(self, client_pool, repo):
        repo.contents[('acme', 'skills', 'SKILL.md')] = [{'name': 'nested', 'type': 'dir'}]
        fetcher = fetcher_for(client_pool)

        with pytest.raises(NotFound) as exc_info:
            await fetcher.fetch(SkillSource('acme', 'skills'))
        assert exc_info.value.attempts == 1

    @pytest.mark.asyncio
    async def test_non_404_error_stops_resolution(self, client_pool, repo):
        repo.contents[('acme', 'skills', 'pdf/SKILL.md')] = GitHubApiError(500, 'Server Error')
        repo.contents[('acme', 'skills', 'skills/pdf/SKILL.md')] = file_payload(SKILL_MD)
        fetcher = fetcher_for(client_pool)

        with pytest.raises(FetchFailed):
            await fetcher.fetch(SkillSource('acme', 'skills', 'pdf'))

    @pytest.mark.asyncio
    async def test_explicit_branch_is_used(self, client_pool, repo):
        repo.contents[('acme', 'skills', 'SKILL.md')] = file_payload(SKILL_MD)
        fetcher = fetcher_for(client_pool)

        content = await fetcher.fetch(SkillSource('acme', 'skills', branch='dev'))

        assert content.branch == 'dev'
        assert ('get_content', 'acme', 'skills', 'SKILL.md', 'dev') in repo.calls

    @pytest.mark.asyncio
    async def test_missing_repository(self, client_pool, github):
        fetcher = fetcher_for(client_pool)
        with pytest.raises(NotFound):
            await fetcher.fetch(SkillSource('ghost', 'repo'))


class TestRawFallback:
    """Tests for the raw content fallback."""

    @pytest.mark.asyncio
    async def test_transport_failure_uses_raw_content(self, client_pool, repo):
        repo.contents[('acme', 'skills', 'SKILL.md')] = TransportError('timeout')
        session = FakeRawSession(FakeRawResponse(SKILL_MD.encode('utf-8')))
        fetcher = fetcher_for(client_pool, session)

        content = await fetcher.fetch(SkillSource('acme', 'skills'))

        assert content.via == 'raw_fallback'
        assert content.skill_md == SKILL_MD
        assert session.urls == ['https://raw.githubusercontent.com/acme/skills/main/SKILL.md']

    @pytest.mark.asyncio
    async def test_fallback_failure_is_unavailable(self, client_pool, repo):
        repo.contents[('acme', 'skills', 'SKILL.md')] = TransportError('timeout')
        session = FakeRawSession(error=requests.ConnectionError('unreachable'))
        fetcher = fetcher_for(client_pool, session)

        with pytest.raises(FetchUnavailable):
            await fetcher.fetch(SkillSource('acme', 'skills'))

    @pytest.mark.asyncio
    async def test_fallback_404_is_unavailable(self, client_pool, repo):
        repo.contents[('acme', 'skills', 'SKILL.md')] = TransportError('timeout')
        session = FakeRawSession(FakeRawResponse(status_code=404))
        fetcher = fetcher_for(client_pool, session)

        with pytest.raises(FetchUnavailable):
            await fetcher.fetch(SkillSource('acme', 'skills'))

    @pytest.mark.asyncio
    async def test_metadata_transport_failure(self, client_pool, github):
        github.repos['acme/skills'] = TransportError('reset by peer')
        fetcher = fetcher_for(client_pool)
        with pytest.raises(FetchUnavailable):
            await fetcher.fetch(SkillSource('acme', 'skills'))


class TestAuxiliaryFiles:
    """Tests for scripts and references."""

    @pytest.mark.asyncio
    async def test_fetches_scripts_and_small_references(self, client_pool, repo):
        repo.contents[('acme', 'skills', 'pdf/SKILL.md')] = file_payload(SKILL_MD, 'pdf/SKILL.md')
        repo.contents[('acme', 'skills', 'pdf')] = [
            {'name': 'SKILL.md', 'path': 'pdf/SKILL.md', 'type': 'file', 'size': 300},
            {'name': 'scripts', 'path': 'pdf/scripts', 'type': 'dir'},
            {'name': 'references', 'path': 'pdf/references', 'type': 'dir'},
        ]
        repo.contents[('acme', 'skills', 'pdf/scripts')] = [
            {'name': 'extract.sh', 'path': 'pdf/scripts/extract.sh', 'type': 'file', 'size': 20},
            {'name': 'data.bin', 'path': 'pdf/scripts/data.bin', 'type': 'file', 'size': 20},
            {'name': 'broken.py', 'path': 'pdf/scripts/broken.py', 'type': 'file', 'size': 20},
        ]
        repo.contents[('acme', 'skills', 'pdf/scripts/extract.sh')] = file_payload('echo hi', 'extract.sh')
        repo.contents[('acme', 'skills', 'pdf/scripts/broken.py')] = GitHubApiError(500, 'Server Error')
        repo.contents[('acme', 'skills', 'pdf/references')] = [
            {'name': 'guide.md', 'path': 'pdf/references/guide.md', 'type': 'file', 'size': 100},
            {'name': 'huge.md', 'path': 'pdf/references/huge.md', 'type': 'file', 'size': 200_000},
        ]
        repo.contents[('acme', 'skills', 'pdf/references/guide.md')] = file_payload('# Guide', 'guide.md')
        fetcher = fetcher_for(client_pool)

        content = await fetcher.fetch(SkillSource('acme', 'skills', 'pdf'))

        assert [(s.name, s.language, s.content) for s in content.scripts] == [('extract.sh', 'bash', 'echo hi')]
        assert [r.name for r in content.references] == ['guide.md']
        assert len(content.files) == 3
        assert not any(c[3] == 'pdf/references/huge.md' for c in repo.calls if c[0] == 'get_content')

    @pytest.mark.asyncio
    async def test_generic_layouts_skip_directory_listing(self, client_pool, repo):
        repo.contents[('acme', 'skills', '.cursorrules')] = file_payload(CURSORRULES, '.cursorrules')
        fetcher = fetcher_for(client_pool)

        content = await fetcher.fetch(SkillSource('acme', 'skills', 'ignored', layout='cursorrules'))

        assert content.resolved_path == '.cursorrules'
        assert content.files == []
        assert [c for c in repo.calls if c[0] == 'get_content'] == [
            ('get_content', 'acme', 'skills', '.cursorrules', 'main'),
        ]
