"""
Instruction file layout conventions
Knows which filename each convention uses, where it may live, and how ids are derived
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from .models import DEFAULT_LAYOUT, SkillSource


@dataclass(frozen=True)
class InstructionFilePattern:
    layout: str
    filename: str
    root_only: bool = False
    path_filter: Optional[str] = None
    has_frontmatter: bool = False
    platform: str = 'claude'
    min_content_length: int = 100


INSTRUCTION_FILE_PATTERNS = [
    InstructionFilePattern('skill.md', 'SKILL.md', has_frontmatter=True, platform='claude',
                           min_content_length=50),
    InstructionFilePattern('agents.md', 'AGENTS.md', platform='codex'),
    InstructionFilePattern('copilot-instructions', 'copilot-instructions.md', path_filter='.github/',
                           platform='copilot'),
    InstructionFilePattern('cursorrules', '.cursorrules', root_only=True, platform='cursor'),
    InstructionFilePattern('windsurfrules', '.windsurfrules', root_only=True, platform='windsurf'),
]

LAYOUTS = {p.layout: p for p in INSTRUCTION_FILE_PATTERNS}

# Prefixes probed for a default-layout skill that was not found at its own path
SKILL_DIR_PREFIXES = ['skills/', '.claude/skills/', '.github/skills/']


def get_pattern(layout: str) -> InstructionFilePattern:
    return LAYOUTS.get(layout, LAYOUTS[DEFAULT_LAYOUT])


def normalize_path(path: str) -> str:
    """Treat '.' and surrounding slashes as the repository root"""
    path = (path or '').strip().strip('/')
    return '' if path == '.' else path


def join_path(*parts: str) -> str:
    return '/'.join(p for p in parts if p)


def candidate_paths(source: SkillSource) -> List[str]:
    """Ordered list of file paths to try for a source's instruction file"""
    pattern = get_pattern(source.layout)
    path = normalize_path(source.path)

    if pattern.root_only:
        return [pattern.filename]

    if pattern.path_filter:
        return [pattern.path_filter + pattern.filename]

    if pattern.layout == 'agents.md':
        paths = [join_path(path, pattern.filename)]
        if path:
            paths.append(pattern.filename)
        return paths

    paths = [join_path(path, pattern.filename)]
    if path:
        for prefix in SKILL_DIR_PREFIXES:
            if not path.startswith(prefix):
                paths.append(f"{prefix}{path}/{pattern.filename}")
    return paths


def format_suffix(layout: str) -> str:
    """'' for the default layout, '~<layout without dots>' otherwise"""
    if layout == DEFAULT_LAYOUT:
        return ''
    return '~' + layout.replace('.', '')


def build_skill_id(owner: str, repo: str, name: str, layout: str = DEFAULT_LAYOUT) -> str:
    return f"{owner}/{repo}/{name}{format_suffix(layout)}"


def match_layout(file_path: str) -> Optional[InstructionFilePattern]:
    """Find the layout an arbitrary repository file path belongs to"""
    for pattern in INSTRUCTION_FILE_PATTERNS:
        if pattern.root_only:
            if file_path == pattern.filename:
                return pattern
            continue
        if not (file_path == pattern.filename or file_path.endswith('/' + pattern.filename)):
            continue
        if pattern.path_filter and pattern.path_filter not in file_path:
            continue
        return pattern
    return None


def skill_dir_from_file(file_path: str, filename: str) -> str:
    """skills/pdf/SKILL.md -> skills/pdf ; SKILL.md -> '.'"""
    stripped = re.sub(r'/?' + re.escape(filename) + r'$', '', file_path)
    return stripped or '.'
