"""
Skill indexer
Fetch, analyze and persist one source at a time; writes are fingerprint-idempotent
"""

import asyncio
import dataclasses
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Set

from .analyzer import AnalysisResult, SkillAnalyzer
from .exceptions import NotFound, RateLimitExhausted
from .fetcher import ContentFetcher
from .layouts import build_skill_id, get_pattern, skill_dir_from_file
from .models import SkillContent, SkillRecord, SkillSource
from .notify import ResendNotifier
from .search_sync import SearchSync
from .store import SkillStore

logger = logging.getLogger(__name__)


class SkillIndexer:
    def __init__(
        self,
        fetcher: ContentFetcher,
        store: SkillStore,
        analyzer: Optional[SkillAnalyzer] = None,
        search: Optional[SearchSync] = None,
        notifier: Optional[ResendNotifier] = None,
    ):
        self.fetcher = fetcher
        self.store = store
        self.analyzer = analyzer or SkillAnalyzer()
        self.search = search or SearchSync()
        self.notifier = notifier or ResendNotifier()
        self._pending: Set[asyncio.Task] = set()

    @staticmethod
    def build_record(skill_id: str, source: SkillSource, skill_dir: str, content: SkillContent,
                     analysis: AnalysisResult, existing: Optional[SkillRecord]) -> SkillRecord:
        meta = analysis.metadata
        fields = dict(
            id=skill_id,
            name=meta.name,
            description=meta.description,
            owner=source.owner,
            repo=source.repo,
            path=skill_dir,
            branch=content.branch,
            layout=source.layout,
            content_fingerprint=analysis.content_fingerprint,
            security_score=analysis.security.score,
            security_status=analysis.security.status,
            quality_score=analysis.quality['overall'],
            quality_details={k: v for k, v in analysis.quality.items() if k != 'overall'},
            stars=content.repo_meta.stars,
            forks=content.repo_meta.forks,
            license=meta.license or content.repo_meta.license,
            version=meta.version,
            author=meta.author,
            platforms=list(meta.platforms),
            raw_content=content.skill_md,
            cached_scripts=[{'name': s.name, 'content': s.content} for s in content.scripts],
            indexed_at=datetime.now(timezone.utc).isoformat(),
            last_scanned=analysis.security.scanned_at,
        )
        if existing is None:
            return SkillRecord(**fields)
        # Moderation flags and review state belong to other workflows
        return dataclasses.replace(existing, **fields)

    async def index_one(self, source: SkillSource, force: bool = False) -> Optional[str]:
        """Index a source; the skill id when something was written, else None"""
        logger.info(f"Fetching {source}...")
        content = await self.fetcher.fetch(source)

        skill_dir = skill_dir_from_file(content.resolved_path, get_pattern(source.layout).filename)
        fallback_name = skill_dir.rsplit('/', 1)[-1] if skill_dir != '.' else source.repo
        analysis = self.analyzer.analyze(content, source.layout, fallback_name)

        if not analysis.validation.is_valid:
            logger.info(f"Skipping invalid skill {source}: {'; '.join(analysis.validation.errors)}")
            return None

        name = analysis.metadata.name or fallback_name
        skill_id = build_skill_id(source.owner, source.repo, name, source.layout)

        existing = await self.store.get_by_id(skill_id)
        if existing is not None and existing.is_blocked:
            logger.info(f"Skill {skill_id} is blocked, skipping")
            return None

        if not force and existing is not None and existing.content_fingerprint == analysis.content_fingerprint:
            if existing.path == skill_dir and existing.branch == content.branch:
                logger.info(f"Skill {skill_id} unchanged, skipping")
                return None
            logger.info(
                f"Skill {skill_id} moved: {existing.path}@{existing.branch} -> {skill_dir}@{content.branch}"
            )

        record = self.build_record(skill_id, source, skill_dir, content, analysis, existing)
        await self.store.upsert(record)

        if not await self.search.sync_skill(record):
            logger.warning(f"Search index out of date for {skill_id}")

        await self._complete_add_requests(source, skill_id, name)
        await self._link_categories(skill_id, record)

        logger.info(
            f"Indexed: {skill_id} [{source.layout}] "
            f"(security: {record.security_score}, quality: {record.quality_score})"
        )
        return skill_id

    async def _complete_add_requests(self, source: SkillSource, skill_id: str, name: str) -> None:
        try:
            add_requests = await self.store.find_approved_requests_by_repo(source.owner, source.repo)
            for request in add_requests:
                await self.store.update_request_status(request.id, 'indexed', indexed_skill_id=skill_id)

                user = await self.store.get_user(request.user_id)
                if user and user.get('email'):
                    locale = 'fa' if user.get('preferred_locale') == 'fa' else 'en'
                    self._notify(user['email'], locale, {
                        'skill_id': skill_id,
                        'skill_name': name,
                        'repository_url': f"https://github.com/{source.owner}/{source.repo}",
                    })
        except Exception as e:
            logger.warning(f"Failed to check add requests for {skill_id}: {e}")

    async def _link_categories(self, skill_id: str, record: SkillRecord) -> None:
        try:
            categories = await self.store.link_to_categories(skill_id, record.name, record.description or '')
            logger.info(f"  -> Categories: [{', '.join(categories)}]")
        except Exception as e:
            logger.warning(f"  -> Failed to link categories for {skill_id}: {e}")

    def _notify(self, address: str, locale: str, details: dict) -> None:
        task = asyncio.create_task(
            asyncio.to_thread(self.notifier.send_indexed_notification, address, locale, details)
        )
        self._pending.add(task)
        task.add_done_callback(self._notification_done)

    def _notification_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Failed to send indexed notification: {error}")

    async def drain(self) -> None:
        """Wait for outstanding notifications"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def index_many(self, sources: Iterable[SkillSource], force: bool = False) -> dict:
        stats = {'indexed': 0, 'skipped': 0, 'not_found': 0, 'failed': 0}

        try:
            for source in sources:
                try:
                    skill_id = await self.index_one(source, force=force)
                except NotFound as e:
                    stats['not_found'] += 1
                    logger.info(f"Not found after {e.attempts} attempt(s): {e}")
                    continue
                except RateLimitExhausted as e:
                    stats['failed'] += 1
                    logger.error(f"Stopping indexing: {e}")
                    break
                except Exception as e:
                    stats['failed'] += 1
                    logger.error(f"Failed to index {source}: {e}")
                    continue

                if skill_id:
                    stats['indexed'] += 1
                else:
                    stats['skipped'] += 1
        finally:
            await self.drain()

        logger.info(
            f"Indexing complete: {stats['indexed']} indexed, {stats['skipped']} skipped, "
            f"{stats['not_found']} not found, {stats['failed']} failed"
        )
        return stats
