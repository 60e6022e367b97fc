"""
Skill analyzer
Parses, fingerprints, security-scans and quality-scores fetched content
"""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .models import DEFAULT_LAYOUT, RepoMetadata, SkillContent
from .security import SecurityReport, scan_security
from .skill_parser import ParsedSkill, SkillParser

QUALITY_WEIGHTS = {
    'documentation': 0.3,
    'maintenance': 0.25,
    'popularity': 0.2,
    'security': 0.15,
    'validation': 0.1,
}

RELEVANT_TOPICS = ['ai', 'agent', 'skill', 'claude', 'copilot', 'codex', 'llm']


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    metadata: ParsedSkill
    content_fingerprint: str
    security: SecurityReport
    quality: Dict
    validation: ValidationResult


def normalize_content(content: str) -> str:
    """CRLF to LF, trailing whitespace stripped per line, outer whitespace stripped"""
    text = (content or '').replace('\r\n', '\n')
    return '\n'.join(line.rstrip() for line in text.split('\n')).strip()


def fingerprint(content: str) -> str:
    return hashlib.sha256(normalize_content(content).encode('utf-8')).hexdigest()


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None


def score_documentation(skill: ParsedSkill, content: SkillContent) -> int:
    score = 0
    if len(skill.description) > 20:
        score += 20

    body_length = len(skill.body)
    if body_length > 500:
        score += 15
    elif body_length > 200:
        score += 10
    elif body_length > 50:
        score += 5

    headers = len(re.findall(r'^#+\s', skill.body, re.MULTILINE))
    if headers >= 3:
        score += 15
    elif headers >= 1:
        score += 10

    if '```' in skill.body:
        score += 15
    if skill.version:
        score += 10
    if skill.license:
        score += 5
    if skill.frontmatter.get('compatibility') and skill.platforms:
        score += 10
    if content.scripts:
        score += 5
    if content.references:
        score += 5
    return min(100, score)


def score_maintenance(meta: RepoMetadata, now: datetime) -> int:
    score = 0
    updated = _parse_time(meta.updated_at)
    if updated is not None:
        days = (now - updated).total_seconds() / 86400
        if days < 30:
            score += 40
        elif days < 90:
            score += 30
        elif days < 180:
            score += 20
        elif days < 365:
            score += 10

    if meta.license:
        score += 20
    if meta.description:
        score += 10
    if meta.topics:
        score += 10

    if meta.forks >= 10:
        score += 20
    elif meta.forks >= 5:
        score += 15
    elif meta.forks >= 1:
        score += 10
    return min(100, score)


def score_popularity(meta: RepoMetadata) -> int:
    stars, forks = meta.stars, meta.forks
    score = 0
    for threshold, points in ((1000, 50), (100, 40), (50, 30), (10, 20), (5, 10), (1, 5)):
        if stars >= threshold:
            score += points
            break
    for threshold, points in ((50, 30), (10, 20), (5, 15), (1, 10)):
        if forks >= threshold:
            score += points
            break
    if any(rt in t.lower() for t in meta.topics for rt in RELEVANT_TOPICS):
        score += 20
    return min(100, score)


class SkillAnalyzer:
    """Turns fetched content into an AnalysisResult; no I/O"""

    def __init__(self, parser: Optional[SkillParser] = None):
        self.parser = parser or SkillParser()

    def analyze(self, content: SkillContent, layout: str = DEFAULT_LAYOUT, fallback_name: str = 'skill',
                now: Optional[datetime] = None) -> AnalysisResult:
        now = now or datetime.now(timezone.utc)
        skill = self.parser.parse(content.skill_md, layout, content.repo_meta.description, fallback_name)

        validation = ValidationResult(
            is_valid=skill.is_valid,
            errors=list(skill.errors),
            warnings=list(skill.warnings),
        )

        security = scan_security(
            content.skill_md,
            [{'name': s.name, 'content': s.content} for s in content.scripts],
        )

        components = {
            'documentation': score_documentation(skill, content),
            'maintenance': score_maintenance(content.repo_meta, now),
            'popularity': score_popularity(content.repo_meta),
            'security': security.score,
            'validation': 100 if validation.is_valid else max(0, 100 - 20 * len(validation.errors)),
        }
        overall = round(sum(components[k] * w for k, w in QUALITY_WEIGHTS.items()))

        return AnalysisResult(
            metadata=skill,
            content_fingerprint=fingerprint(content.skill_md),
            security=security,
            quality={'overall': overall, **components},
            validation=validation,
        )
