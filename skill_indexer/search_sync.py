"""
Meilisearch sync
Keeps the optional full-text index in step with the primary store.
Unconfigured or unreachable engines turn every call into a successful no-op.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Optional

import meilisearch
from meilisearch.errors import (
    MeilisearchApiError,
    MeilisearchCommunicationError,
    MeilisearchError,
    MeilisearchTimeoutError,
)

from .config import SEARCH_BATCH_SIZE, SEARCH_INDEX_UID, get_meili_key, get_meili_url
from .exceptions import SearchSyncFailed
from .models import SkillRecord

logger = logging.getLogger(__name__)

SEARCHABLE_ATTRIBUTES = ['name', 'description', 'owner', 'repo']
FILTERABLE_ATTRIBUTES = ['platforms', 'layout', 'security_status', 'security_score', 'stars']
SORTABLE_ATTRIBUTES = ['stars', 'quality_score', 'indexed_at']
RANKING_RULES = ['words', 'typo', 'proximity', 'attribute', 'sort', 'exactness', 'stars:desc']


def sanitize_id(skill_id: str) -> str:
    """
    Document ids only allow [a-zA-Z0-9_-].

    anthropics/skills/pdf -> anthropics__skills__pdf
    bdmorin/.claude/git   -> bdmorin___dot_claude__git
    """
    return skill_id.replace('/', '__').replace('.', '_dot_')


def restore_id(document_id: str) -> str:
    return document_id.replace('_dot_', '.').replace('__', '/')


def to_document(record: SkillRecord) -> dict:
    return {
        'id': sanitize_id(record.id),
        'name': record.name,
        'description': record.description,
        'owner': record.owner,
        'repo': record.repo,
        'layout': record.layout,
        'platforms': record.platforms or [],
        'stars': record.stars or 0,
        'security_score': record.security_score or 0,
        'security_status': record.security_status,
        'quality_score': record.quality_score or 0,
        'indexed_at': record.indexed_at or datetime.now(timezone.utc).isoformat(),
    }


class SearchSync:
    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None,
                 client=None, index_uid: str = SEARCH_INDEX_UID):
        self.url = url
        self.index_uid = index_uid
        self.client = client
        if self.client is None and url:
            self.client = meilisearch.Client(url, api_key)
        self.initialized = False

    @classmethod
    def from_env(cls) -> 'SearchSync':
        return cls(get_meili_url(), get_meili_key())

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _initialize_index(self) -> None:
        if self.initialized:
            return

        try:
            self.client.get_index(self.index_uid)
        except MeilisearchApiError:
            logger.info(f"Creating Meilisearch index '{self.index_uid}'...")
            self.client.create_index(self.index_uid, {'primaryKey': 'id'})

        index = self.client.index(self.index_uid)
        index.update_searchable_attributes(SEARCHABLE_ATTRIBUTES)
        index.update_filterable_attributes(FILTERABLE_ATTRIBUTES)
        index.update_sortable_attributes(SORTABLE_ATTRIBUTES)
        index.update_ranking_rules(RANKING_RULES)

        self.initialized = True
        logger.info(f"Meilisearch index '{self.index_uid}' initialized")

    async def _write(self, action: str, fn: Callable, *args) -> None:
        """Run one index write; raises SearchSyncFailed when Meilisearch rejects it"""
        try:
            await asyncio.to_thread(self._initialize_index)
            await asyncio.to_thread(fn, *args)
        except (MeilisearchCommunicationError, MeilisearchTimeoutError) as e:
            logger.warning(f"Meilisearch unreachable, skipped {action}: {e}")
        except MeilisearchError as e:
            raise SearchSyncFailed(f"Meilisearch rejected {action}: {e}") from e

    async def _call(self, action: str, fn: Callable, *args) -> bool:
        if not self.is_configured:
            return True

        try:
            await self._write(action, fn, *args)
        except SearchSyncFailed as e:
            logger.error(str(e))
            return False
        return True

    async def sync_skill(self, record: SkillRecord) -> bool:
        index = self.client.index(self.index_uid) if self.is_configured else None
        return await self._call(
            f"sync of {record.id}",
            lambda: index.add_documents([to_document(record)]),
        )

    async def delete_skill(self, skill_id: str) -> bool:
        index = self.client.index(self.index_uid) if self.is_configured else None
        return await self._call(
            f"delete of {skill_id}",
            lambda: index.delete_document(sanitize_id(skill_id)),
        )

    async def sync_all(self, records: Iterable[SkillRecord]) -> Dict[str, int]:
        """Bulk upload in batches; the first failure marks everything left as failed"""
        if not self.is_configured:
            logger.info("Meilisearch not configured, skipping bulk sync")
            return {'success': 0, 'failed': 0}

        documents = [to_document(r) for r in records]
        results = {'success': 0, 'failed': 0}
        total_batches = (len(documents) + SEARCH_BATCH_SIZE - 1) // SEARCH_BATCH_SIZE

        try:
            await asyncio.to_thread(self._initialize_index)
            index = self.client.index(self.index_uid)
            for start in range(0, len(documents), SEARCH_BATCH_SIZE):
                batch = documents[start:start + SEARCH_BATCH_SIZE]
                await asyncio.to_thread(index.add_documents, batch)
                results['success'] += len(batch)
                logger.info(
                    f"Synced batch {start // SEARCH_BATCH_SIZE + 1}/{total_batches} "
                    f"({results['success']}/{len(documents)} skills) to Meilisearch"
                )
        except MeilisearchError as e:
            logger.error(f"Bulk sync to Meilisearch failed: {e}")
            results['failed'] = len(documents) - results['success']

        return results

    async def check_health(self) -> bool:
        if not self.is_configured:
            return False
        try:
            await asyncio.to_thread(self.client.health)
        except MeilisearchError as e:
            logger.debug(f"Meilisearch health check failed: {e}")
            return False
        return True

    async def log_status(self) -> None:
        if not self.is_configured:
            logger.info("Meilisearch: not configured (MEILI_URL not set)")
            return

        if await self.check_health():
            logger.info(f"Meilisearch: connected to {self.url}")
        else:
            logger.warning(f"Meilisearch: unable to connect to {self.url}, sync will be skipped")
