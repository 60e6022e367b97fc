"""
Instruction file parser
Extracts metadata and content from SKILL.md and generic instruction files
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import jsonschema
import yaml

from .config import CATEGORY_KEYWORDS
from .layouts import get_pattern
from .models import DEFAULT_LAYOUT

SCHEMA_PATH = Path(__file__).parent / "schema" / "skill.schema.json"

FRONTMATTER_RE = re.compile(r'^---\s*\n(.*?)\n---\s*(?:\n|$)', re.DOTALL)

MAX_DESCRIPTION_LENGTH = 1024
RESERVED_NAMES = {'test', 'example', 'demo', 'skill', 'template'}

LAYOUT_LABELS = {
    'skill.md': 'SKILL.md',
    'agents.md': 'AGENTS.md',
    'cursorrules': '.cursorrules',
    'windsurfrules': '.windsurfrules',
    'copilot-instructions': 'Copilot Instructions',
}


def normalize_name(name: str) -> str:
    """
    Normalize a skill name: lowercase, hyphens, max 64 chars.

    Examples:
        "Go-to-Market-Planner" -> "go-to-market-planner"
        "My Skill Name" -> "my-skill-name"
    """
    if not name:
        return "unknown"
    name = re.sub(r'[^a-z0-9]+', '-', str(name).lower())
    name = re.sub(r'-+', '-', name).strip('-')
    return name[:64].strip('-') if name else "unknown"


@dataclass
class ParsedSkill:
    name: str
    description: str
    body: str
    layout: str = DEFAULT_LAYOUT
    version: Optional[str] = None
    license: Optional[str] = None
    author: Optional[str] = None
    platforms: List[str] = field(default_factory=list)
    frontmatter: Dict = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class SkillParser:
    """Parse instruction files and extract metadata"""

    def __init__(self, schema_path: Optional[Path] = None):
        self.schema_path = schema_path or SCHEMA_PATH
        with open(self.schema_path, 'r', encoding='utf-8') as f:
            self.schema = json.load(f)
        self.validator = jsonschema.Draft7Validator(self.schema)

    @staticmethod
    def parse_frontmatter(content: str) -> Tuple[dict, str, Optional[str]]:
        """(frontmatter, body, yaml error message or None)"""
        match = FRONTMATTER_RE.match(content)
        if not match:
            return {}, content, None

        body = content[match.end():]
        try:
            data = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError as e:
            return {}, body, f"Invalid YAML frontmatter: {e}"

        if not isinstance(data, dict):
            return {}, body, "Frontmatter must be a mapping"
        return data, body, None

    @staticmethod
    def extract_title(content: str) -> Optional[str]:
        """Extract title from first # heading"""
        match = re.search(r'^#\s+(.+)$', content, re.MULTILINE)
        if match:
            return match.group(1).strip()
        return None

    @staticmethod
    def extract_first_paragraph(body: str) -> Optional[str]:
        """First non-heading paragraph, truncated to 200 chars"""
        lines = []
        for line in body.strip().split('\n'):
            line = line.strip()
            if line.startswith('#'):
                if lines:
                    break
                continue
            if not line:
                if lines:
                    break
                continue
            lines.append(line)

        if not lines:
            return None
        desc = ' '.join(lines)
        if len(desc) > 200:
            desc = desc[:197] + '...'
        return desc

    def validate_frontmatter(self, frontmatter: dict) -> List[str]:
        errors = []
        for error in sorted(self.validator.iter_errors(frontmatter), key=lambda e: list(e.path)):
            location = '.'.join(str(p) for p in error.path)
            errors.append(f"{location}: {error.message}" if location else error.message)
        return errors

    @staticmethod
    def _platforms(frontmatter: dict) -> List[str]:
        compatibility = frontmatter.get('compatibility')
        if isinstance(compatibility, dict) and isinstance(compatibility.get('platforms'), list):
            return [str(p) for p in compatibility['platforms']]
        return []

    @staticmethod
    def _optional_str(value) -> Optional[str]:
        if isinstance(value, dict):
            value = value.get('name')
        if value is None or value == '':
            return None
        return str(value)

    def parse_skill_md(self, content: str) -> ParsedSkill:
        frontmatter, body, yaml_error = self.parse_frontmatter(content)
        errors = []
        warnings = []

        if yaml_error:
            errors.append(yaml_error)
        elif not frontmatter:
            errors.append("SKILL.md must have YAML frontmatter")
        else:
            errors.extend(self.validate_frontmatter(frontmatter))

        if not body.strip():
            errors.append("Content is empty")

        name = str(frontmatter.get('name') or '')
        description = str(frontmatter.get('description') or '')

        if name in RESERVED_NAMES:
            warnings.append(f'"{name}" is a reserved name and may cause conflicts')
        if description and len(description) < 20:
            warnings.append("Description is very short")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            warnings.append(f"Description exceeds {MAX_DESCRIPTION_LENGTH} characters")

        return ParsedSkill(
            name=name,
            description=description,
            body=body.strip(),
            layout=DEFAULT_LAYOUT,
            version=self._optional_str(frontmatter.get('version')),
            license=self._optional_str(frontmatter.get('license')),
            author=self._optional_str(frontmatter.get('author')),
            platforms=self._platforms(frontmatter) or ['claude'],
            frontmatter=frontmatter,
            errors=errors,
            warnings=warnings,
        )

    def parse_generic(
        self,
        content: str,
        layout: str,
        repo_description: Optional[str] = None,
        fallback_name: str = 'skill',
    ) -> ParsedSkill:
        """Synthesize metadata for files without a required frontmatter block"""
        pattern = get_pattern(layout)
        frontmatter, body, _ = self.parse_frontmatter(content)
        errors = []

        if not body.strip():
            errors.append("Instruction file content is empty")
        elif len(body.strip()) < pattern.min_content_length:
            errors.append(
                f"Content is too short for {LAYOUT_LABELS.get(layout, layout)} "
                f"(minimum {pattern.min_content_length} chars)"
            )

        if frontmatter.get('name'):
            raw_name = str(frontmatter['name'])
        elif repo_description:
            raw_name = '-'.join(repo_description.split()[:3])
        else:
            raw_name = fallback_name
        name = normalize_name(raw_name)

        description = (
            frontmatter.get('description')
            or repo_description
            or self.extract_first_paragraph(body)
            or f"{LAYOUT_LABELS.get(layout, layout)} instructions"
        )

        return ParsedSkill(
            name=name,
            description=str(description)[:MAX_DESCRIPTION_LENGTH],
            body=body.strip(),
            layout=layout,
            version=self._optional_str(frontmatter.get('version')),
            license=self._optional_str(frontmatter.get('license')),
            author=self._optional_str(frontmatter.get('author')),
            platforms=[pattern.platform],
            frontmatter=frontmatter,
            errors=errors,
        )

    def parse(self, content: str, layout: str = DEFAULT_LAYOUT, repo_description: Optional[str] = None,
              fallback_name: str = 'skill') -> ParsedSkill:
        if layout == DEFAULT_LAYOUT:
            return self.parse_skill_md(content)
        return self.parse_generic(content, layout, repo_description, fallback_name)


def detect_categories(name: str, description: str, tags: Optional[list] = None) -> List[str]:
    """Categories whose keywords appear in name, description or tags, best match first"""
    text = f"{name} {description} {' '.join(tags or [])}".lower()

    scores = {}
    for category, keywords in CATEGORY_KEYWORDS.items():
        score = sum(1 for kw in keywords if kw in text)
        if score > 0:
            scores[category] = score

    return sorted(scores, key=lambda c: scores[c], reverse=True)
