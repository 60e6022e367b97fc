"""
Primary store
SkillStore is the interface the indexer and rescan job depend on;
JsonFileStore keeps everything in one JSON document on disk.
"""

import fcntl
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Iterable, List, Optional

from .config import RESCAN_SKILL_TYPES
from .models import AddRequest, SkillRecord
from .skill_parser import detect_categories

logger = logging.getLogger(__name__)


def is_unscanned(record: SkillRecord) -> bool:
    """Browse-ready row with raw content whose security status was never set"""
    return (
        record.is_browse_ready
        and (record.skill_type is None or record.skill_type in RESCAN_SKILL_TYPES)
        and record.security_status is None
        and bool(record.raw_content)
    )


class SkillStore(ABC):
    @abstractmethod
    async def upsert(self, record: SkillRecord) -> None:
        ...

    @abstractmethod
    async def get_by_id(self, skill_id: str) -> Optional[SkillRecord]:
        ...

    @abstractmethod
    async def link_to_categories(self, skill_id: str, name: str, description: str) -> List[str]:
        ...

    @abstractmethod
    async def find_approved_requests_by_repo(self, owner: str, repo: str) -> List[AddRequest]:
        ...

    @abstractmethod
    async def update_request_status(self, request_id: str, status: str,
                                    indexed_skill_id: Optional[str] = None) -> None:
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    async def count_unscanned(self) -> int:
        ...

    @abstractmethod
    async def find_unscanned(self, limit: int, exclude_ids: Iterable[str] = ()) -> List[SkillRecord]:
        ...

    @abstractmethod
    async def update_security(self, skill_id: str, score: int, status: str,
                              review_status: Optional[str], last_scanned: str) -> None:
        ...

    @abstractmethod
    def iter_skills(self) -> AsyncIterator[SkillRecord]:
        ...


class JsonFileStore(SkillStore):
    """
    SkillStore backed by a single JSON file.

    Every mutation holds an exclusive lock on ``<path>.lock``, re-reads the
    file, applies its change and rewrites the file, so processes sharing a
    path only ever add to each other's data. Reads use the snapshot from the
    last load.
    """

    def __init__(self, path: str):
        self.path = path
        self.skills: Dict[str, dict] = {}
        self.skill_categories: Dict[str, List[str]] = {}
        self.add_requests: List[dict] = []
        self.users: Dict[str, dict] = {}
        if os.path.exists(self.path):
            self.load()
            logger.info(f"Loaded {len(self.skills)} skills from {self.path}")
        else:
            logger.info(f"No store at {self.path}, starting empty")

    def load(self) -> None:
        if not os.path.exists(self.path):
            return

        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        self.skills = data.get('skills', {})
        self.skill_categories = data.get('skill_categories', {})
        self.add_requests = data.get('add_requests', [])
        self.users = data.get('users', {})

    @contextmanager
    def _lock(self):
        directory = os.path.dirname(self.path) or '.'
        os.makedirs(directory, exist_ok=True)
        with open(f"{self.path}.lock", 'w') as fh:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)

    @contextmanager
    def _transaction(self):
        """Re-read under the lock, let the caller mutate, then write"""
        with self._lock():
            self.load()
            yield
            self._write()

    def _write(self) -> None:
        output = {
            'updated_at': datetime.now(timezone.utc).isoformat(),
            'total_count': len(self.skills),
            'skills': self.skills,
            'skill_categories': self.skill_categories,
            'add_requests': self.add_requests,
            'users': self.users,
        }
        directory = os.path.dirname(self.path) or '.'
        with tempfile.NamedTemporaryFile('w', dir=directory, suffix='.tmp', delete=False,
                                         encoding='utf-8') as f:
            json.dump(output, f, indent=2, ensure_ascii=False)
            tmp_path = f.name
        try:
            os.replace(tmp_path, self.path)
        except OSError:
            os.unlink(tmp_path)
            raise

    def save(self) -> None:
        """Write the in-memory document as is, replacing the file"""
        with self._lock():
            self._write()

    async def upsert(self, record: SkillRecord) -> None:
        with self._transaction():
            self.skills[record.id] = record.to_dict()

    async def get_by_id(self, skill_id: str) -> Optional[SkillRecord]:
        data = self.skills.get(skill_id)
        return SkillRecord.from_dict(data) if data else None

    async def link_to_categories(self, skill_id: str, name: str, description: str) -> List[str]:
        categories = detect_categories(name, description)
        with self._transaction():
            self.skill_categories[skill_id] = categories
        return categories

    async def find_approved_requests_by_repo(self, owner: str, repo: str) -> List[AddRequest]:
        key = f"{owner}/{repo}".lower()
        return [
            AddRequest(**{k: r[k] for k in AddRequest.__dataclass_fields__ if k in r})
            for r in self.add_requests
            if r.get('status') == 'approved' and f"{r['owner']}/{r['repo']}".lower() == key
        ]

    async def update_request_status(self, request_id: str, status: str,
                                    indexed_skill_id: Optional[str] = None) -> None:
        with self._transaction():
            request = next((r for r in self.add_requests if r['id'] == request_id), None)
            if request is not None:
                request['status'] = status
                if indexed_skill_id is not None:
                    request['indexed_skill_id'] = indexed_skill_id
        if request is None:
            logger.warning(f"Add request {request_id} not found")

    async def get_user(self, user_id: str) -> Optional[dict]:
        return self.users.get(user_id)

    async def count_unscanned(self) -> int:
        return sum(1 for data in self.skills.values() if is_unscanned(SkillRecord.from_dict(data)))

    async def find_unscanned(self, limit: int, exclude_ids: Iterable[str] = ()) -> List[SkillRecord]:
        excluded = set(exclude_ids)
        rows = [
            SkillRecord.from_dict(data) for skill_id, data in self.skills.items()
            if skill_id not in excluded
        ]
        rows = [r for r in rows if is_unscanned(r)]
        rows.sort(key=lambda r: r.stars or 0, reverse=True)
        return rows[:limit]

    async def update_security(self, skill_id: str, score: int, status: str,
                              review_status: Optional[str], last_scanned: str) -> None:
        with self._transaction():
            data = self.skills.get(skill_id)
            if data is not None:
                data['security_score'] = score
                data['security_status'] = status
                data['review_status'] = review_status
                data['last_scanned'] = last_scanned
        if data is None:
            logger.warning(f"Skill {skill_id} not found for security update")

    async def iter_skills(self) -> AsyncIterator[SkillRecord]:
        for data in list(self.skills.values()):
            yield SkillRecord.from_dict(data)
