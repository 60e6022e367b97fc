"""Unit tests for Meilisearch sync."""

import pytest
from meilisearch.errors import MeilisearchCommunicationError, MeilisearchError

from skill_indexer import search_sync
from skill_indexer.exceptions import SearchSyncFailed
from skill_indexer.models import SkillRecord
from skill_indexer.search_sync import SearchSync, restore_id, sanitize_id, to_document

from conftest import FakeIndex, FakeMeiliClient


def record(skill_id='anthropics/skills/pdf', **kwargs):
    owner, repo, name = skill_id.split('/', 2)
    return SkillRecord(skill_id, name, 'A skill', owner, repo, name, 'main', 'skill.md', 'abc', **kwargs)


class TestIds:
    """Tests for document id sanitizing."""

    @pytest.mark.parametrize("skill_id,document_id", [
        ('anthropics/skills/pdf', 'anthropics__skills__pdf'),
        ('bdmorin/.claude/git', 'bdmorin___dot_claude__git'),
    ])
    def test_round_trip(self, skill_id, document_id):
        assert sanitize_id(skill_id) == document_id
        assert restore_id(document_id) == skill_id

    def test_sanitize_is_not_injective(self):
        # Literal '_dot_' in an id collides with a dotted id
        assert sanitize_id('a/b_dot_c') == sanitize_id('a/b.c')

    def test_document_fields(self):
        doc = to_document(record(stars=7, platforms=['claude']))
        assert doc['id'] == 'anthropics__skills__pdf'
        assert doc['stars'] == 7
        assert doc['platforms'] == ['claude']
        assert doc['indexed_at']


class TestSearchSync:
    """Tests for SearchSync."""

    @pytest.mark.asyncio
    async def test_unconfigured_is_a_successful_noop(self):
        search = SearchSync()
        assert not search.is_configured
        assert await search.sync_skill(record()) is True
        assert await search.delete_skill('anthropics/skills/pdf') is True
        assert await search.sync_all([record()]) == {'success': 0, 'failed': 0}
        assert await search.check_health() is False

    @pytest.mark.asyncio
    async def test_sync_initializes_index_once(self):
        client = FakeMeiliClient()
        search = SearchSync(client=client)

        assert await search.sync_skill(record())
        assert await search.sync_skill(record('anthropics/skills/docx'))

        assert client.get_index_calls == 1
        assert len(client.index_obj.batches) == 2
        assert client.index_obj.settings['sortable'] == search_sync.SORTABLE_ATTRIBUTES

    @pytest.mark.asyncio
    async def test_unreachable_engine_counts_as_success(self):
        index = FakeIndex(error=MeilisearchCommunicationError('connection refused'))
        search = SearchSync(client=FakeMeiliClient(index))
        assert await search.sync_skill(record()) is True

    @pytest.mark.asyncio
    async def test_rejected_write_returns_false(self):
        index = FakeIndex(error=MeilisearchError('invalid document'))
        search = SearchSync(client=FakeMeiliClient(index))
        assert await search.sync_skill(record()) is False

    @pytest.mark.asyncio
    async def test_rejected_write_raises_sync_failed(self):
        index = FakeIndex(error=MeilisearchError('invalid document'))
        search = SearchSync(client=FakeMeiliClient(index))

        with pytest.raises(SearchSyncFailed) as exc_info:
            await search._write('sync of a/b/c', index.add_documents, [{'id': 'a__b__c'}])

        assert 'sync of a/b/c' in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, MeilisearchError)

    @pytest.mark.asyncio
    async def test_delete_uses_sanitized_id(self):
        client = FakeMeiliClient()
        search = SearchSync(client=client)
        assert await search.delete_skill('bdmorin/.claude/git')
        assert client.index_obj.deleted == ['bdmorin___dot_claude__git']

    @pytest.mark.asyncio
    async def test_sync_all_batches(self, monkeypatch):
        monkeypatch.setattr(search_sync, 'SEARCH_BATCH_SIZE', 2)
        client = FakeMeiliClient()
        search = SearchSync(client=client)

        results = await search.sync_all([record(f'o/r/skill-{i}') for i in range(5)])

        assert results == {'success': 5, 'failed': 0}
        assert [len(b) for b in client.index_obj.batches] == [2, 2, 1]

    @pytest.mark.asyncio
    async def test_sync_all_failure_marks_remainder(self, monkeypatch):
        monkeypatch.setattr(search_sync, 'SEARCH_BATCH_SIZE', 2)
        index = FakeIndex(error=MeilisearchError('payload too large'), fail_on_batch=2)
        search = SearchSync(client=FakeMeiliClient(index))

        results = await search.sync_all([record(f'o/r/skill-{i}') for i in range(5)])

        assert results == {'success': 2, 'failed': 3}

    @pytest.mark.asyncio
    async def test_health(self):
        search = SearchSync(client=FakeMeiliClient())
        assert await search.check_health() is True
