"""
Logging setup shared by the API server and the crawl CLI.

Console output keeps the ANSI colors used in crawl progress lines; the log
file gets the same records with the color codes stripped.
"""

import logging
import re


# Custom formatter to strip ANSI color codes from file logs
class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)


def _handlers(settings, log_to_file: bool):
    handlers = []
    if log_to_file:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
        file_handler.setFormatter(ColorStripFormatter(settings.log_format))
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(settings.log_format))
    handlers.append(console_handler)
    return handlers


def configure_logging(settings, log_to_file: bool = True):
    """
    Install the root and crawl logger handlers.

    Args:
        settings: Application settings (log level, format and file)
        log_to_file: Also write to settings.log_file
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        handlers=_handlers(settings, log_to_file),
        force=True  # Override any existing configuration
    )

    # Crawl loggers get their own handlers and stop propagating so
    # progress lines appear once
    scraper_logger = logging.getLogger('scraper')
    scraper_logger.propagate = False
    for handler in list(scraper_logger.handlers):
        scraper_logger.removeHandler(handler)
        handler.close()
    for handler in _handlers(settings, log_to_file):
        scraper_logger.addHandler(handler)
    scraper_logger.setLevel(level)

    # Library loggers are chatty at DEBUG
    for noisy in ('asyncio', 'httpx', 'openai'):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
