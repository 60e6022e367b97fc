"""
Command line entry point

    skill-indexer discover --output sources/discovered.json
    skill-indexer index anthropics/skills --path pdf
    skill-indexer crawl --code-search --commits
    skill-indexer rescan --dry-run
    skill-indexer sync-search
    skill-indexer token-status --refresh
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from datetime import datetime, timezone

from .client_pool import ClientPool
from .config import get_store_path
from .exceptions import ConfigurationError, SkillIndexerError
from .fetcher import ContentFetcher
from .indexer import SkillIndexer
from .layouts import LAYOUTS
from .models import DEFAULT_LAYOUT, SkillSource
from .notify import ResendNotifier
from .rescan import BatchRescanJob
from .search_sync import SearchSync
from .store import JsonFileStore
from .strategies import StrategyOrchestrator
from .token_pool import TokenPool

logger = logging.getLogger(__name__)


def build_indexer(client_pool: ClientPool, store: JsonFileStore) -> SkillIndexer:
    return SkillIndexer(
        fetcher=ContentFetcher(client_pool),
        store=store,
        search=SearchSync.from_env(),
        notifier=ResendNotifier.from_env(),
    )


def save_sources(sources, stats: dict, output_path: str) -> None:
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    output = {
        'name': 'Discovered Skill Sources',
        'discovered_at': datetime.now(timezone.utc).isoformat(),
        'total_count': len(sources),
        'stats': stats,
        'sources': [asdict(s) for s in sources],
    }
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(output, f, indent=2, ensure_ascii=False)

    logger.info(f"Saved {len(sources)} sources to {output_path}")


def parse_source(value: str, path: str, branch: str, layout: str) -> SkillSource:
    parts = value.strip('/').split('/')
    if len(parts) != 2 or not all(parts):
        raise argparse.ArgumentTypeError(f"Expected owner/repo, got '{value}'")
    return SkillSource(owner=parts[0], repo=parts[1], path=path, branch=branch, layout=layout)


async def cmd_discover(args, client_pool: ClientPool) -> int:
    orchestrator = StrategyOrchestrator(client_pool)
    sources, stats = await orchestrator.discover_sources(
        include_code_search=args.code_search, include_popular=args.popular, include_commits=args.commits)
    save_sources(sources, stats, args.output)
    return 0


async def cmd_index(args, client_pool: ClientPool) -> int:
    source = parse_source(args.repo, args.path, args.branch, args.layout)
    indexer = build_indexer(client_pool, JsonFileStore(args.store))
    try:
        skill_id = await indexer.index_one(source, force=args.force)
    finally:
        await indexer.drain()

    if skill_id:
        print(f"Indexed {skill_id}")
    else:
        print(f"Nothing written for {source}")
    return 0


async def cmd_crawl(args, client_pool: ClientPool) -> int:
    orchestrator = StrategyOrchestrator(client_pool)
    sources, _ = await orchestrator.discover_sources(
        include_code_search=args.code_search, include_popular=args.popular, include_commits=args.commits)
    if args.limit:
        sources = sources[:args.limit]

    indexer = build_indexer(client_pool, JsonFileStore(args.store))
    stats = await indexer.index_many(sources, force=args.force)
    print(json.dumps(stats, indent=2))
    return 0 if stats['failed'] == 0 else 1


async def cmd_rescan(args) -> int:
    job = BatchRescanJob(JsonFileStore(args.store), batch_size=args.batch_size)
    summary = await job.run(dry_run=args.dry_run)

    print(f"\n{'=' * 60}")
    if summary.dry_run:
        print(f"[DRY RUN] Would scan {summary.total} skills")
        for sample in summary.samples:
            print(f"  {sample['id']} ({sample['name']})")
    else:
        print(f"Total scanned:      {summary.processed}")
        print(f"Errors (skipped):   {summary.errors}")
        print(f"PASS:               {summary.passed}")
        print(f"WARNING:            {summary.warnings}")
        print(f"FAIL:               {summary.failed}")
        print(f"Avg security score: {summary.average_score}")
    return 0


async def cmd_sync_search(args) -> int:
    search = SearchSync.from_env()
    await search.log_status()

    store = JsonFileStore(args.store)
    records = [r async for r in store.iter_skills() if r.is_browse_ready]
    results = await search.sync_all(records)
    print(f"Synced {results['success']} skills, {results['failed']} failed")
    return 0 if results['failed'] == 0 else 1


async def cmd_token_status(args, client_pool: ClientPool) -> int:
    if args.refresh:
        await client_pool.refresh_rate_limits()

    status = client_pool.token_pool.get_status()
    print(f"Tokens: {status['available_tokens']}/{status['total_tokens']} usable, "
          f"{status['global_remaining']} requests remaining")
    for token in status['tokens']:
        reset = datetime.fromtimestamp(token['reset_at'], tz=timezone.utc).strftime('%H:%M:%S')
        state = 'ok' if token['usable'] else 'exhausted'
        print(f"  [{token['name']}] {token['remaining']}/{token['limit']} (resets {reset} UTC) {state}")
    return 0


async def run(args) -> int:
    if args.command == 'rescan':
        return await cmd_rescan(args)
    if args.command == 'sync-search':
        return await cmd_sync_search(args)

    client_pool = ClientPool(TokenPool.from_env())
    try:
        if args.command == 'discover':
            return await cmd_discover(args, client_pool)
        if args.command == 'index':
            return await cmd_index(args, client_pool)
        if args.command == 'crawl':
            return await cmd_crawl(args, client_pool)
        return await cmd_token_status(args, client_pool)
    finally:
        await client_pool.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Discover and index agent skills from GitHub')
    parser.add_argument('--store', default=get_store_path(), help='Path of the JSON skill store')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    discover = sub.add_parser('discover', help='Run discovery strategies and save skill sources')
    discover.add_argument('--output', default='sources/discovered.json', help='Output file path')
    discover.add_argument('--code-search', action='store_true', help='Also run GitHub code search')
    discover.add_argument('--popular', action='store_true', help='Also deep scan star-ranked popular repos')
    discover.add_argument('--commits', action='store_true', help='Also search recent commits mentioning SKILL.md')

    index = sub.add_parser('index', help='Index a single repository source')
    index.add_argument('repo', help='owner/repo')
    index.add_argument('--path', default='', help='Skill directory inside the repository')
    index.add_argument('--branch', default='', help='Branch (default branch when omitted)')
    index.add_argument('--layout', default=DEFAULT_LAYOUT, choices=sorted(LAYOUTS), help='Instruction file layout')
    index.add_argument('--force', action='store_true', help='Write even if content is unchanged')

    crawl = sub.add_parser('crawl', help='Discover and index everything')
    crawl.add_argument('--code-search', action='store_true', help='Also run GitHub code search')
    crawl.add_argument('--popular', action='store_true', help='Also deep scan star-ranked popular repos')
    crawl.add_argument('--commits', action='store_true', help='Also search recent commits mentioning SKILL.md')
    crawl.add_argument('--force', action='store_true', help='Write even if content is unchanged')
    crawl.add_argument('--limit', type=int, default=0, help='Index at most N sources')

    rescan = sub.add_parser('rescan', help='Security scan stored skills that were never scanned')
    rescan.add_argument('--dry-run', action='store_true', help='Show what would change without writing')
    rescan.add_argument('--batch-size', type=int, default=100, help='Skills per batch')

    sub.add_parser('sync-search', help='Push every browse-ready skill to Meilisearch')

    tokens = sub.add_parser('token-status', help='Show GitHub token quota')
    tokens.add_argument('--refresh', action='store_true', help='Query /rate_limit for every token first')

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    try:
        return asyncio.run(run(args))
    except ConfigurationError as e:
        logger.error(str(e))
        return 2
    except SkillIndexerError as e:
        logger.error(f"Failed: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
