"""
Command Line Interface for sitecrawl

This package provides command line argument parsing and validation for the
crawl and scrape commands.

Classes:
    CLIManager: Command line interface manager
"""

from sitecrawl.cli.arguments import CLIManager

__all__ = ['CLIManager']
