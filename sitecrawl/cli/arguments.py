"""
Command Line Argument Parsing for sitecrawl

Handles the crawl and scrape subcommands and their configuration overrides.
"""

import argparse
from typing import List, Optional

from sitecrawl import __version__
from sitecrawl.core.config import ConfigManager


class CLIManager:
    """
    Command line interface manager

    Parses arguments for the two subcommands, validates them and applies the
    overrides on top of the loaded configuration.
    """

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all options

        Returns:
            Configured argument parser
        """
        parser = argparse.ArgumentParser(
            prog="sitecrawl",
            description="Domain crawler and content scraper",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
            epilog=self._get_epilog()
        )

        parser.add_argument(
            "--config",
            default="config/config.yaml",
            help="Path to configuration file (defaults are used when it is missing)"
        )
        parser.add_argument(
            "--log-level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Logging level"
        )
        parser.add_argument(
            "--version",
            action="version",
            version=f"sitecrawl v{__version__}"
        )

        subparsers = parser.add_subparsers(dest="command", metavar="{crawl,scrape}")
        subparsers.required = True

        crawl = subparsers.add_parser(
            "crawl",
            help="Discover every page of the domain and write the URL list",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        )
        crawl.add_argument("--base-url", help="Root URL of the domain to crawl")
        crawl.add_argument("--output", "-o", help="File the discovered URLs are written to")
        crawl.add_argument("--concurrency", "-c", type=int, help="Maximum in-flight page requests")
        crawl.add_argument("--batch-size", "-b", type=int, help="URLs drained from the frontier per batch")
        crawl.add_argument(
            "--proxy",
            action="store_true",
            help="Route every request through the rotating proxy (needs PROXY_USER and PROXY_PASS)"
        )
        crawl.add_argument("--clear-state", action="store_true", help="Discard saved crawl state first")
        crawl.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

        scrape = subparsers.add_parser(
            "scrape",
            help="Convert every listed page into a content record",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        )
        scrape.add_argument("--urls-file", "-u", help="Newline-delimited list of URLs to scrape")
        scrape.add_argument("--output", "-o", help="JSON file the records are written to")
        scrape.add_argument("--concurrency", "-c", type=int, help="Maximum in-flight page requests")
        scrape.add_argument("--rate-limit-ms", "-r", type=int, help="Delay before each fetch within a chunk")
        scrape.add_argument("--retries", type=int, help="Attempts per URL before it is marked failed")
        scrape.add_argument("--clear-cache", action="store_true", help="Discard the scrape cache and progress first")
        scrape.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

        return parser

    def _get_epilog(self) -> str:
        """
        Get epilog text for help message

        Returns:
            Formatted epilog text
        """
        return """
Examples:
  # Discover the site and write urls.txt
  python -m sitecrawl crawl

  # Crawl through the rotating proxy with smaller batches
  python -m sitecrawl crawl --proxy --batch-size=20

  # Scrape the discovered pages into posts.json
  python -m sitecrawl scrape --urls-file=urls.txt --output=posts.json

  # Start a scrape from scratch
  python -m sitecrawl scrape --clear-cache --rate-limit-ms=250

Notes:
  - Interrupted runs resume from crawl_state.json / scraper_cache.json
  - Proxy credentials are read from PROXY_USER and PROXY_PASS
"""

    def parse_arguments(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        """
        Parse command line arguments

        Args:
            args: Command line arguments (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        parsed_args = self.parser.parse_args(args)
        self.validate_arguments(parsed_args)
        return parsed_args

    def validate_arguments(self, args: argparse.Namespace) -> bool:
        """
        Validate parsed arguments for consistency

        Exits through parser.error() on invalid values.
        """
        if args.concurrency is not None and args.concurrency <= 0:
            self.parser.error("Concurrency must be greater than 0")

        if args.command == "crawl":
            if args.batch_size is not None and args.batch_size <= 0:
                self.parser.error("Batch size must be greater than 0")
        else:
            if args.rate_limit_ms is not None and args.rate_limit_ms < 0:
                self.parser.error("Rate limit must be non-negative")
            if args.retries is not None and args.retries <= 0:
                self.parser.error("Retries must be greater than 0")

        return True

    def apply_overrides(self, args: argparse.Namespace, config_manager: ConfigManager) -> None:
        """Copy command line overrides into the loaded configuration"""
        if args.concurrency is not None:
            config_manager.fetch_config.max_concurrent = args.concurrency

        if args.command == "crawl":
            crawl_config = config_manager.crawl_config
            if args.base_url:
                crawl_config.base_url = args.base_url
            if args.output:
                crawl_config.output_file = args.output
            if args.batch_size is not None:
                crawl_config.batch_size = args.batch_size
            if args.proxy:
                crawl_config.use_proxy = True
        else:
            scrape_config = config_manager.scrape_config
            if args.urls_file:
                scrape_config.urls_file = args.urls_file
            if args.output:
                scrape_config.output_file = args.output
            if args.rate_limit_ms is not None:
                scrape_config.rate_limit_ms = args.rate_limit_ms
            if args.retries is not None:
                config_manager.fetch_config.retries = args.retries

    def log_level(self, args: argparse.Namespace, default: str) -> str:
        """--verbose wins over --log-level, which wins over the config file"""
        if args.verbose:
            return "DEBUG"
        return args.log_level or default
