"""
Data models shared by the discovery, fetching and indexing stages
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_LAYOUT = 'skill.md'


@dataclass
class SkillSource:
    """Where to look for a skill's instruction file"""
    owner: str
    repo: str
    path: str = ''
    branch: str = ''
    layout: str = DEFAULT_LAYOUT

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def dedup_key(self) -> str:
        suffix = f"::{self.layout}" if self.layout != DEFAULT_LAYOUT else ''
        return f"{self.owner}/{self.repo}/{self.path}{suffix}".lower()

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}/{self.path or '.'} [{self.layout}]"


@dataclass
class RepoCandidate:
    """A repository nominated by a discovery strategy"""
    owner: str
    repo: str
    stars: Optional[int] = None
    discovered_via: str = ''

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.repo}".lower()


@dataclass
class ForkInfo:
    owner: str
    repo: str
    stars: int = 0
    updated_at: str = ''
    is_archived: bool = False
    default_branch: str = 'main'


@dataclass
class TokenRecord:
    """Quota bookkeeping for one GitHub credential"""
    credential: str
    name: str
    remaining: int
    reset_at: float  # Unix timestamp, seconds
    limit: int
    last_used_at: float = 0.0

    def is_usable(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return self.remaining > 0 or now >= self.reset_at

    def effective_remaining(self, now: Optional[float] = None) -> int:
        """Remaining quota, counting a passed reset as a full window"""
        now = time.time() if now is None else now
        if now >= self.reset_at:
            return max(self.remaining, self.limit)
        return self.remaining


@dataclass
class RepoMetadata:
    stars: int = 0
    forks: int = 0
    license: Optional[str] = None
    description: Optional[str] = None
    updated_at: Optional[str] = None
    created_at: Optional[str] = None
    default_branch: str = 'main'
    topics: List[str] = field(default_factory=list)
    archived: bool = False

    @classmethod
    def from_api(cls, data: dict) -> 'RepoMetadata':
        license_info = data.get('license') or {}
        return cls(
            stars=data.get('stargazers_count') or 0,
            forks=data.get('forks_count') or 0,
            license=license_info.get('spdx_id'),
            description=data.get('description'),
            updated_at=data.get('updated_at'),
            created_at=data.get('created_at'),
            default_branch=data.get('default_branch') or 'main',
            topics=data.get('topics') or [],
            archived=bool(data.get('archived')),
        )


@dataclass
class FileInfo:
    name: str
    path: str
    type: str
    size: int = 0


@dataclass
class ScriptFile:
    name: str
    path: str
    content: str
    language: str = 'unknown'


@dataclass
class ReferenceFile:
    name: str
    path: str
    content: str


@dataclass
class SkillContent:
    """Everything fetched for one SkillSource"""
    skill_md: str
    repo_meta: RepoMetadata
    branch: str
    resolved_path: str
    via: str = 'api'
    files: List[FileInfo] = field(default_factory=list)
    scripts: List[ScriptFile] = field(default_factory=list)
    references: List[ReferenceFile] = field(default_factory=list)


@dataclass
class SkillRecord:
    """Persisted skill row, owned by the primary store"""
    id: str
    name: str
    description: str
    owner: str
    repo: str
    path: str
    branch: str
    layout: str
    content_fingerprint: str
    security_score: Optional[int] = None
    security_status: Optional[str] = None
    quality_score: Optional[int] = None
    quality_details: Dict[str, Any] = field(default_factory=dict)
    is_blocked: bool = False
    is_duplicate: bool = False
    stars: int = 0
    forks: int = 0
    license: Optional[str] = None
    version: Optional[str] = None
    author: Optional[str] = None
    platforms: List[str] = field(default_factory=list)
    raw_content: Optional[str] = None
    cached_scripts: List[Dict[str, str]] = field(default_factory=list)
    review_status: Optional[str] = None
    skill_type: Optional[str] = None
    indexed_at: Optional[str] = None
    last_scanned: Optional[str] = None

    @property
    def is_browse_ready(self) -> bool:
        return not self.is_blocked and not self.is_duplicate

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'SkillRecord':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class AddRequest:
    """User nomination of a repository: pending -> approved -> indexed"""
    id: str
    owner: str
    repo: str
    user_id: str
    status: str = 'pending'
    indexed_skill_id: Optional[str] = None
