"""
Logging System for sitecrawl

Provides logging with file rotation, console output and helpers for
progress lines and end-of-run summaries.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Dict, Any


LOGGER_NAME = 'sitecrawl'


class LoggingManager:
    """
    Centralized logging manager with file rotation
    """

    def __init__(self):
        self.logger: Optional[logging.Logger] = None
        self.file_handler: Optional[logging.handlers.RotatingFileHandler] = None
        self.console_handler: Optional[logging.StreamHandler] = None
        self._setup_complete = False

    def setup_logging(self, level: str = "INFO", log_file: Optional[str] = "./logs/sitecrawl.log",
                      max_size: str = "100MB", backup_count: int = 5) -> None:
        """
        Set up logging system with file rotation and console output

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Path to log file, or None for console only
            max_size: Maximum size before rotation (e.g., "100MB")
            backup_count: Number of backup files to keep
        """
        self.close()

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()

        detailed_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            self.file_handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=self._parse_size(max_size), backupCount=backup_count, encoding='utf-8'
            )
            self.file_handler.setLevel(logging.DEBUG)
            self.file_handler.setFormatter(detailed_formatter)
            self.logger.addHandler(self.file_handler)

        self.console_handler = logging.StreamHandler(sys.stdout)
        self.console_handler.setLevel(getattr(logging, level.upper()))
        self.console_handler.setFormatter(console_formatter)
        self.logger.addHandler(self.console_handler)

        self._setup_complete = True
        self.logger.debug("Logging system initialized")

    def _parse_size(self, size_str: str) -> int:
        """Parse size string like '100MB' to bytes"""
        size_str = size_str.upper().strip()

        if size_str.endswith('KB'):
            return int(size_str[:-2]) * 1024
        elif size_str.endswith('MB'):
            return int(size_str[:-2]) * 1024 * 1024
        elif size_str.endswith('GB'):
            return int(size_str[:-2]) * 1024 * 1024 * 1024
        else:
            return int(size_str)

    def get_logger(self) -> logging.Logger:
        """Get the package logger, configured or not"""
        if self.logger is None:
            return logging.getLogger(LOGGER_NAME)
        return self.logger

    def log_url_result(self, url: str, success: bool, processing_time: float,
                       error_message: Optional[str] = None) -> None:
        """Log the result of processing a single URL"""
        logger = self.get_logger()
        if success:
            logger.debug(f"Processed {url} in {processing_time:.2f}s")
        else:
            logger.warning(f"Failed {url} after {processing_time:.2f}s: {error_message}")

    def log_progress(self, current: int, total: int, failed: int = 0, message: str = "") -> None:
        """Log progress information"""
        percentage = (current * 100) // total if total > 0 else 0
        progress_msg = f"Progress: {current}/{total} ({percentage}%) processed, {failed} failed"
        if message:
            progress_msg += f" - {message}"

        self.get_logger().info(progress_msg)

    def generate_summary_report(self, stats: Dict[str, Any]) -> str:
        """Generate and log a summary report for a crawl or scrape run"""
        report_lines = [
            "=" * 60,
            f"{stats.get('run', 'RUN').upper()} SUMMARY",
            "=" * 60,
            f"Duration: {stats.get('duration', 0.0):.2f}s",
        ]

        for key in ('discovered', 'total_urls', 'processed', 'failed', 'records', 'skipped'):
            if key in stats:
                report_lines.append(f"  {key.replace('_', ' ').capitalize()}: {stats[key]}")

        if stats.get('records') and stats.get('duration'):
            report_lines.append(f"  Rate: {stats['records'] / stats['duration']:.2f} records/second")

        report_lines.append("=" * 60)

        report = "\n".join(report_lines)
        self.get_logger().info(f"Session Summary:\n{report}")

        return report

    def close(self) -> None:
        """Close logging handlers"""
        if self.file_handler:
            self.file_handler.close()
            self.file_handler = None
        if self.console_handler:
            self.console_handler.close()
            self.console_handler = None


# Global logging manager instance
logging_manager = LoggingManager()


def get_logger() -> logging.Logger:
    """Get the global logger instance"""
    return logging_manager.get_logger()


def setup_logging(level: str = "INFO", log_file: Optional[str] = "./logs/sitecrawl.log",
                  max_size: str = "100MB", backup_count: int = 5) -> None:
    """Set up global logging system"""
    logging_manager.setup_logging(level, log_file, max_size, backup_count)
