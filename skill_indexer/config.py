"""
Indexer configuration
"""

import os
from typing import List, Optional

# GitHub API settings
GITHUB_API_BASE = "https://api.github.com"
GITHUB_RAW_BASE = "https://raw.githubusercontent.com"
USER_AGENT = "SkillIndexer/1.0"

API_TIMEOUT = 30  # Seconds per GitHub API request
RAW_TIMEOUT = 10  # Seconds for the raw-content fallback

# Token accounting
DEFAULT_RATE_LIMIT = 5000  # GitHub authenticated limit per hour
SECONDARY_LIMIT_CEILING = 100  # Limits below this are code-search style secondary limits

# Pagination
PER_PAGE = 100
TOPIC_MAX_PAGES = 5
FORK_MAX_PAGES = 10
CODE_SEARCH_MAX_PAGES = 10
CODE_SEARCH_DELAY = 7.0  # Code search secondary limit is ~10 req/min per token
POPULAR_MAX_PAGES = 10
COMMITS_MAX_PAGES = 5

# Orchestrator seeding for the fork network strategy
FORK_SEED_MIN_STARS = 10
FORK_SEED_LIMIT = 50
FORK_INACTIVE_DAYS = 365

# Content fetching
REFERENCE_MAX_BYTES = 100_000
SCRIPT_EXTENSIONS = {
    '.sh': 'bash',
    '.bash': 'bash',
    '.py': 'python',
    '.js': 'javascript',
    '.ts': 'typescript',
    '.rb': 'ruby',
    '.ps1': 'powershell',
}
REFERENCE_EXTENSIONS = ['.md', '.txt', '.json', '.yaml', '.yml', '.xml', '.html', '.css']

# Deep scan branch selection
IMPORTANT_BRANCH_NAMES = ['stable', 'next', 'latest', 'canary', 'dev', 'develop']
IMPORTANT_BRANCH_PREFIXES = ['release/', 'releases/']
MAX_EXTRA_BRANCHES = 5

# Curated lists mined for repository links
KNOWN_AWESOME_LISTS = [
    {'owner': 'travisvn', 'repo': 'awesome-claude-skills', 'readme': 'README.md'},
    {'owner': 'VoltAgent', 'repo': 'awesome-claude-skills', 'readme': 'README.md'},
    {'owner': 'ComposioHQ', 'repo': 'awesome-claude-skills', 'readme': 'README.md'},
    {'owner': 'skillmatic-ai', 'repo': 'awesome-agent-skills', 'readme': 'README.md'},
    {'owner': 'github', 'repo': 'awesome-copilot', 'readme': 'README.md'},
]

# Topics that indicate a repository might contain skills
SKILL_TOPICS = [
    "claude-skills",
    "agent-skills",
    "ai-skills",
    "claude-code",
    "codex-skills",
    "copilot-skills",
    "skill-md",
    "anthropic-skills",
    "claude-code-skills",
    "ai-agent-skills",
    "skill",
    "skills",
    "clawdhub",
    "skillhub",
    "llm-skills",
    "mcp-skills",
    "cursor-rules",
    "cursorrules",
    "windsurf-rules",
    "windsurfrules",
    "copilot-instructions",
]

# Repository description / README queries
REPO_SEARCH_QUERIES = [
    "SKILL.md in:readme",
    "claude skills in:description",
    "agent skills in:description",
    '"agent skill" in:readme',
    "claude code skill in:readme",
    "codex skill in:readme",
    "anthropic skills in:description",
    ".cursorrules in:readme",
    "cursor rules in:description",
    "AGENTS.md in:readme",
    "copilot-instructions in:readme",
    "windsurf rules in:description",
]

# Code search queries, keyed by the layout they discover
CODE_SEARCH_QUERIES = [
    {'label': 'all-skills', 'query': 'filename:SKILL.md', 'layout': 'skill.md'},
    {'label': 'skills-folder', 'query': 'filename:SKILL.md path:skills', 'layout': 'skill.md'},
    {'label': 'claude-folder', 'query': 'filename:SKILL.md path:.claude', 'layout': 'skill.md'},
    {'label': 'github-folder', 'query': 'filename:SKILL.md path:.github', 'layout': 'skill.md'},
    {'label': 'agents-md', 'query': 'filename:AGENTS.md', 'layout': 'agents.md'},
    {'label': 'cursorrules', 'query': 'filename:.cursorrules', 'layout': 'cursorrules'},
    {'label': 'windsurfrules', 'query': 'filename:.windsurfrules', 'layout': 'windsurfrules'},
    {'label': 'copilot-instructions', 'query': 'filename:copilot-instructions.md path:.github',
     'layout': 'copilot-instructions'},
]

# Popular repositories, searched in star ranges under the 1000 result window
POPULAR_MIN_STARS = 1000
POPULAR_STAR_BREAKPOINTS = [500, 1000, 2000, 5000, 10000, 25000, 50000, 100000]

# Commit message queries; {since} is a YYYY-MM-DD date
COMMITS_DAYS_BACK = 30
COMMIT_SEARCH_QUERIES = [
    "SKILL.md committer-date:>{since}",
    '"add SKILL.md" committer-date:>{since}',
    '"SKILL.md" path:skills committer-date:>{since}',
]

# Categories mapping based on keywords
CATEGORY_KEYWORDS = {
    "development": ["code", "dev", "programming", "software", "build", "compile", "debug", "refactor"],
    "testing": ["test", "testing", "tdd", "unit", "integration", "e2e", "playwright", "cypress", "jest"],
    "data": ["data", "ml", "machine-learning", "analytics", "sql", "database", "visualization"],
    "design": ["design", "ui", "ux", "frontend", "css", "tailwind", "figma", "animation"],
    "documents": ["doc", "pdf", "docx", "xlsx", "pptx", "markdown", "documentation"],
    "productivity": ["productivity", "workflow", "automation", "task", "planning", "memory"],
    "devops": ["devops", "docker", "kubernetes", "deploy", "infrastructure"],
    "security": ["security", "audit", "vulnerability", "owasp", "pentest", "fuzzing"],
    "marketing": ["marketing", "seo", "brand", "campaign", "social"],
    "product": ["product", "prd", "roadmap", "feature", "user-research", "metrics"],
}

# Search index
SEARCH_INDEX_UID = "skills"
SEARCH_BATCH_SIZE = 1000

# Batch rescan
RESCAN_BATCH_SIZE = 100
RESCAN_SAMPLE_SIZE = 5
RESCAN_ERROR_LOG_LIMIT = 5
RESCAN_SKILL_TYPES = ('standalone', 'collection')

# Output paths
DEFAULT_STORE_PATH = "sources/skills-store.json"
DEFAULT_SITE_URL = "https://skills.palebluedot.live"


def get_github_tokens() -> List[str]:
    """Read GitHub tokens: GITHUB_TOKENS (comma separated) wins over GITHUB_TOKEN"""
    tokens_env = os.environ.get('GITHUB_TOKENS', '')
    tokens = [t.strip() for t in tokens_env.split(',') if t.strip()]
    if tokens:
        return tokens

    single = os.environ.get('GITHUB_TOKEN', '').strip()
    return [single] if single else []


def get_github_token_names(count: int) -> List[str]:
    """Token display names from GITHUB_TOKEN_NAMES, else token-1..token-N"""
    names_env = os.environ.get('GITHUB_TOKEN_NAMES', '')
    names = [n.strip() for n in names_env.split(',')] if names_env else []
    if len(names) == count:
        return names
    return [f"token-{i + 1}" for i in range(count)]


def get_meili_url() -> Optional[str]:
    return os.environ.get('MEILI_URL') or None


def get_meili_key() -> Optional[str]:
    return os.environ.get('MEILI_MASTER_KEY') or None


def get_resend_api_key() -> Optional[str]:
    return os.environ.get('RESEND_API_KEY') or None


def get_resend_from_email() -> str:
    return os.environ.get('RESEND_FROM_EMAIL', 'SkillHub <onboarding@resend.dev>')


def get_site_url() -> str:
    return os.environ.get('SITE_URL', DEFAULT_SITE_URL)


def get_store_path() -> str:
    return os.environ.get('SKILL_STORE_PATH', DEFAULT_STORE_PATH)
