"""Unit tests for instruction file layouts and skill ids."""

import pytest

from skill_indexer.layouts import (
    build_skill_id,
    candidate_paths,
    format_suffix,
    match_layout,
    normalize_path,
    skill_dir_from_file,
)
from skill_indexer.models import SkillSource


class TestCandidatePaths:
    """Tests for candidate_paths ordering."""

    def test_skill_md_tries_own_path_then_prefixes(self):
        source = SkillSource('acme', 'skills', path='pdf')
        assert candidate_paths(source) == [
            'pdf/SKILL.md',
            'skills/pdf/SKILL.md',
            '.claude/skills/pdf/SKILL.md',
            '.github/skills/pdf/SKILL.md',
        ]

    def test_skill_md_at_root_has_single_candidate(self):
        for path in ('', '.', '/'):
            assert candidate_paths(SkillSource('acme', 'skills', path=path)) == ['SKILL.md']

    def test_skill_md_skips_prefix_already_in_path(self):
        source = SkillSource('acme', 'skills', path='skills/pdf')
        paths = candidate_paths(source)
        assert paths[0] == 'skills/pdf/SKILL.md'
        assert 'skills/skills/pdf/SKILL.md' not in paths
        assert '.claude/skills/skills/pdf/SKILL.md' in paths

    def test_skill_md_keeps_prefix_sharing_only_top_directory(self):
        source = SkillSource('acme', 'skills', path='.github/workflows')
        assert candidate_paths(source) == [
            '.github/workflows/SKILL.md',
            'skills/.github/workflows/SKILL.md',
            '.claude/skills/.github/workflows/SKILL.md',
            '.github/skills/.github/workflows/SKILL.md',
        ]
        claude = candidate_paths(SkillSource('acme', 'skills', path='.claude/skills/pdf'))
        assert '.claude/skills/.claude/skills/pdf/SKILL.md' not in claude
        assert len(claude) == 3

    def test_agents_md_falls_back_to_root(self):
        source = SkillSource('acme', 'tools', path='packages/cli', layout='agents.md')
        assert candidate_paths(source) == ['packages/cli/AGENTS.md', 'AGENTS.md']

    def test_agents_md_at_root(self):
        source = SkillSource('acme', 'tools', layout='agents.md')
        assert candidate_paths(source) == ['AGENTS.md']

    def test_copilot_instructions_only_under_github_dir(self):
        source = SkillSource('acme', 'tools', path='anything', layout='copilot-instructions')
        assert candidate_paths(source) == ['.github/copilot-instructions.md']

    @pytest.mark.parametrize("layout,filename", [
        ('cursorrules', '.cursorrules'),
        ('windsurfrules', '.windsurfrules'),
    ])
    def test_root_only_layouts_ignore_path(self, layout, filename):
        source = SkillSource('acme', 'tools', path='nested/dir', layout=layout)
        assert candidate_paths(source) == [filename]


class TestSkillIds:
    """Tests for id derivation."""

    def test_default_layout_has_no_suffix(self):
        assert build_skill_id('anthropics', 'skills', 'pdf') == 'anthropics/skills/pdf'

    def test_generic_layout_suffix(self):
        assert build_skill_id('owner', 'repo', 'my-skill', 'cursorrules') == 'owner/repo/my-skill~cursorrules'

    def test_suffix_drops_dots(self):
        assert format_suffix('agents.md') == '~agentsmd'
        assert format_suffix('skill.md') == ''


class TestPathHelpers:
    """Tests for path normalization and layout matching."""

    def test_normalize_path(self):
        assert normalize_path('.') == ''
        assert normalize_path('/skills/pdf/') == 'skills/pdf'
        assert normalize_path(None) == ''

    def test_skill_dir_from_file(self):
        assert skill_dir_from_file('skills/pdf/SKILL.md', 'SKILL.md') == 'skills/pdf'
        assert skill_dir_from_file('SKILL.md', 'SKILL.md') == '.'

    def test_match_layout(self):
        assert match_layout('skills/pdf/SKILL.md').layout == 'skill.md'
        assert match_layout('AGENTS.md').layout == 'agents.md'
        assert match_layout('.github/copilot-instructions.md').layout == 'copilot-instructions'
        assert match_layout('.cursorrules').layout == 'cursorrules'

    def test_match_layout_rejects_misplaced_files(self):
        assert match_layout('docs/.cursorrules') is None
        assert match_layout('docs/copilot-instructions.md') is None
        assert match_layout('README.md') is None
