"""
Trivia Configuration

Loads the service configuration file and sets up logging.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_LOG_FORMAT = "[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s"


@dataclass
class TriviaConfig:
    """
    Configuration for the trivia engine.

    Attributes:
        game_length: Questions per round
        max_history: Recently asked question ids remembered per session
        max_fallbacks: Unresolved turns before help is offered
        stats_max_retries: Attempts at a vanished score counter before dropping the round
        session_ttl: Seconds before an untouched session expires in the store
        question_source: ``"kv"`` or ``"opentdb"``
        bank_size: Questions fetched per round start from OpenTDB
        category: Optional OpenTDB category ID
        emit_events: Whether to publish round events
        game_title: Name used in the welcome prompt
        tts_delay: Pause inserted between prompt sections
    """

    game_length: int = 4
    max_history: int = 100
    max_fallbacks: int = 3
    stats_max_retries: int = 5
    session_ttl: int = 3600
    question_source: str = "kv"
    bank_size: int = 50
    category: Optional[int] = None
    emit_events: bool = True
    game_title: str = "The Fun Trivia Game"
    tts_delay: str = "500ms"

    @classmethod
    def from_dict(cls, config: Optional[Mapping[str, Any]] = None) -> "TriviaConfig":
        config = config or {}
        defaults = cls()
        return cls(
            game_length=max(1, int(config.get("game_length", defaults.game_length))),
            max_history=max(1, int(config.get("max_history", defaults.max_history))),
            max_fallbacks=max(1, int(config.get("max_fallbacks", defaults.max_fallbacks))),
            stats_max_retries=max(1, int(config.get("stats_max_retries", defaults.stats_max_retries))),
            session_ttl=int(config.get("session_ttl", defaults.session_ttl)),
            question_source=config.get("question_source", defaults.question_source),
            bank_size=int(config.get("bank_size", defaults.bank_size)),
            category=config.get("category", defaults.category),
            emit_events=config.get("emit_events", defaults.emit_events),
            game_title=config.get("game_title", defaults.game_title),
            tts_delay=config.get("tts_delay", defaults.tts_delay),
        )


def load_config(config_file: str) -> Dict[str, Any]:
    """Load configuration from a JSON or YAML file

    Args:
        config_file: Path to the file; ``.yaml``/``.yml`` are read as YAML

    Returns:
        Configuration dictionary with ``trivia``, ``nats`` and ``logging``
        sections (missing sections default to empty dicts)
    """
    with open(config_file, 'r', encoding='utf-8') as fp:
        if config_file.endswith(('.yaml', '.yml')):
            conf = yaml.safe_load(fp) or {}
        else:
            conf = json.load(fp)

    for section in ('trivia', 'nats', 'logging'):
        conf.setdefault(section, {})
    return conf


def configure_logger(logger,
                     log_file=None,
                     log_format=DEFAULT_LOG_FORMAT,
                     log_level=logging.INFO):
    """Configure a logger with a file or stream handler

    Args:
        logger: Logger instance or logger name string
        log_file: File path string or file-like object (None for stderr)
        log_format: Format string for log messages
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG)

    Returns:
        Configured logger instance
    """
    if isinstance(log_file, str):
        handler = logging.FileHandler(
            log_file,
            mode='a',
            encoding='utf-8',
            errors='replace'
        )
    else:
        handler = logging.StreamHandler(log_file)  # Default to stderr if None

    if isinstance(log_level, str):
        log_level = getattr(logging, log_level.upper())

    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(handler)
    logger.setLevel(log_level)

    return logger
