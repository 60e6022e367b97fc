"""
Batch security rescan
Scores stored skills that were never security scanned, highest stars first
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from .config import RESCAN_BATCH_SIZE, RESCAN_ERROR_LOG_LIMIT, RESCAN_SAMPLE_SIZE
from .exceptions import ScanFailed
from .models import SkillRecord
from .security import scan_security
from .store import SkillStore

logger = logging.getLogger(__name__)

RESCAN_SCRIPT_EXTENSIONS = ('.sh', '.py', '.js', '.ts', '.ps1', '.bat', '.rb')
DEFAULT_REVIEW_STATUSES = (None, 'unreviewed')


@dataclass
class RescanSummary:
    total: int = 0
    processed: int = 0
    errors: int = 0
    passed: int = 0
    warnings: int = 0
    failed: int = 0
    total_score: int = 0
    dry_run: bool = False
    samples: List[dict] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def scanned(self) -> int:
        return self.processed - self.errors

    @property
    def average_score(self) -> float:
        if self.scanned <= 0:
            return 0.0
        return round(self.total_score / self.scanned, 1)


def extract_scripts(record: SkillRecord) -> List[dict]:
    return [
        {'name': s['name'], 'content': s.get('content') or ''}
        for s in record.cached_scripts or []
        if s.get('name') != 'SKILL.md' and s.get('name', '').endswith(RESCAN_SCRIPT_EXTENSIONS)
    ]


class BatchRescanJob:
    def __init__(self, store: SkillStore, batch_size: int = RESCAN_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    def scan_row(self, record: SkillRecord):
        return scan_security(record.raw_content, extract_scripts(record))

    async def run(self, dry_run: bool = False) -> RescanSummary:
        start = time.monotonic()
        summary = RescanSummary(dry_run=dry_run)
        summary.total = await self.store.count_unscanned()
        logger.info(f"Skills to scan: {summary.total} (batch size {self.batch_size})")

        if summary.total == 0:
            logger.info("Nothing to do, all browse-ready skills already scanned")
            return summary

        if dry_run:
            sample = await self.store.find_unscanned(RESCAN_SAMPLE_SIZE)
            summary.samples = [{'id': r.id, 'name': (r.name or '')[:50]} for r in sample]
            for row in summary.samples:
                logger.info(f"  would scan {row['id']} ({row['name']})")
            logger.info(f"[DRY RUN] Would scan {summary.total} skills")
            return summary

        failed_ids = set()
        while summary.processed < summary.total:
            batch = await self.store.find_unscanned(self.batch_size, exclude_ids=failed_ids)
            if not batch:
                break

            for record in batch:
                try:
                    await self._rescan_row(record, summary)
                except ScanFailed as e:
                    summary.errors += 1
                    failed_ids.add(record.id)
                    if summary.errors <= RESCAN_ERROR_LOG_LIMIT:
                        logger.error(str(e))

                summary.processed += 1
                if summary.processed % 100 == 0 or summary.processed == summary.total:
                    logger.info(f"Processing {summary.processed} / {summary.total}")

        summary.elapsed = round(time.monotonic() - start, 1)
        logger.info(
            f"Security scan summary: scanned {summary.processed}, errors {summary.errors}, "
            f"pass {summary.passed}, warning {summary.warnings}, fail {summary.failed}, "
            f"avg score {summary.average_score} ({summary.elapsed}s)"
        )
        return summary

    async def _rescan_row(self, record: SkillRecord, summary: RescanSummary) -> None:
        try:
            await self._rescan_one(record, summary)
        except Exception as e:
            raise ScanFailed(f"Error scanning {record.id}: {e}") from e

    async def _rescan_one(self, record: SkillRecord, summary: RescanSummary) -> None:
        report = self.scan_row(record)
        review_status: Optional[str] = record.review_status
        if review_status in DEFAULT_REVIEW_STATUSES:
            review_status = 'auto-scored'

        await self.store.update_security(
            record.id,
            report.score,
            report.status,
            review_status,
            datetime.now(timezone.utc).isoformat(),
        )

        summary.total_score += report.score
        if report.status == 'pass':
            summary.passed += 1
        elif report.status == 'warning':
            summary.warnings += 1
        else:
            summary.failed += 1
