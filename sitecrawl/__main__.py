#!/usr/bin/env python3
"""
sitecrawl - Main Entry Point

Loads configuration, sets up logging and runs the crawl or scrape command.
"""

import sys
import asyncio
import argparse
import time
from typing import List, Optional

from sitecrawl.core.base import ConfigurationError, StorageError
from sitecrawl.core.config import ConfigManager
from sitecrawl.core.logging import setup_logging, get_logger, logging_manager
from sitecrawl.cli.arguments import CLIManager
from sitecrawl.storage.output import RecordStorage
from sitecrawl.utils.component_factory import (
    create_crawl_engine,
    create_scrape_orchestrator,
    create_state_store,
)


async def run_crawl(args: argparse.Namespace, config_manager: ConfigManager) -> int:
    """Crawl the domain and write the discovered URL list"""
    logger = get_logger()
    state_store = create_state_store(config_manager)
    if args.clear_state:
        state_store.clear_crawl_state()

    try:
        engine = create_crawl_engine(config_manager, state_store)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    started = time.time()
    logger.info(f"Crawling {config_manager.crawl_config.base_url}")
    try:
        await engine.initialize()
        discovered = await engine.crawl()
    finally:
        await engine.cleanup()

    try:
        RecordStorage().save_url_list(sorted(discovered), config_manager.crawl_config.output_file)
    except StorageError as e:
        logger.error(f"Storage error: {e}")
        return 1

    stats = engine.get_stats()
    logging_manager.generate_summary_report({
        'run': 'crawl',
        'duration': time.time() - started,
        'discovered': len(discovered),
        'processed': stats['fetched'],
        'failed': stats['fetch_errors'],
    })
    return 0


async def run_scrape(args: argparse.Namespace, config_manager: ConfigManager) -> int:
    """Scrape every listed URL and merge the records into the output file"""
    logger = get_logger()
    scrape_config = config_manager.scrape_config
    storage = RecordStorage()

    state_store = create_state_store(config_manager)
    if args.clear_cache:
        state_store.clear_scrape_state()

    try:
        urls = storage.read_url_list(scrape_config.urls_file)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    orchestrator = create_scrape_orchestrator(config_manager, state_store)
    try:
        await orchestrator.initialize()
        records = await orchestrator.scrape_all(urls)
    finally:
        await orchestrator.cleanup()

    if records:
        try:
            storage.save_records(records, scrape_config.output_file)
        except StorageError as e:
            logger.error(f"Storage error: {e}")
            return 1

    stats = orchestrator.get_stats()
    stats.update({'run': 'scrape', 'records': len(records)})
    logging_manager.generate_summary_report(stats)

    if not records and stats['failed'] > 0 and stats['processed'] == 0:
        logger.error("Every URL failed")
        return 1
    return 0


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    cli_manager = CLIManager()
    args = cli_manager.parse_arguments(argv)

    config_manager = ConfigManager(args.config)
    try:
        config_manager.load_config()
    except ConfigurationError as e:
        setup_logging(level="INFO", log_file=None)
        get_logger().error(f"Configuration error: {e}")
        return 1

    cli_manager.apply_overrides(args, config_manager)

    logging_config = config_manager.logging_config
    setup_logging(
        level=cli_manager.log_level(args, logging_config.level),
        log_file=logging_config.file,
        max_size=logging_config.max_size,
        backup_count=logging_config.backup_count
    )
    logger = get_logger()

    try:
        config_manager.validate_config()
    except ConfigurationError as e:
        logger.error(f"Configuration validation failed: {e}")
        return 1

    if args.command == "crawl":
        return await run_crawl(args, config_manager)
    return await run_scrape(args, config_manager)


def run() -> None:
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        print("\nInterrupted by user; saved state will be resumed on the next run")
        exit_code = 130
    finally:
        logging_manager.close()
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
