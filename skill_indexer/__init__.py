# Skill Indexer
# Discovers agent skill repositories on GitHub and indexes their instruction files

from .client_pool import ClientPool
from .github_client import GitHubClient
from .indexer import SkillIndexer
from .models import SkillRecord, SkillSource
from .strategies import StrategyOrchestrator
from .token_pool import TokenPool

__version__ = "1.0.0"

__all__ = [
    'ClientPool',
    'GitHubClient',
    'SkillIndexer',
    'SkillRecord',
    'SkillSource',
    'StrategyOrchestrator',
    'TokenPool',
]
