"""
Configuration and Logging Setup
===============================

Loads engine settings from a YAML file with environment overrides and
configures the loguru sink shared by the CLI and the API.

Usage:
    from retail_segmentation.config import load_settings, setup_logging

    settings = load_settings("config/settings.yaml")
    setup_logging(settings.log_level)
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any
import yaml
from loguru import logger

DEFAULT_CONFIG_PATH = "config/settings.yaml"


@dataclass
class Settings:
    """Runtime settings for a segmentation deployment."""

    database_url: str = "sqlite:///retail_segmentation.db"
    database_echo: bool = False
    num_clusters: int = 4
    max_iterations: int = 100
    epsilon: float = 1e-4
    random_seed: Optional[int] = None
    active_statuses: List[str] = field(default_factory=lambda: ["Active"])
    completed_purchase_statuses: List[str] = field(default_factory=lambda: ["completed"])
    log_level: str = "INFO"
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:8080"]
    )


def load_config(config_path: Optional[str]) -> dict:
    """Load configuration from YAML file."""
    if config_path and Path(config_path).exists():
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    return {}


def load_settings(
    config_path: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None
) -> Settings:
    """
    Build Settings from a YAML file, then apply environment overrides.

    Args:
        config_path: Path to YAML configuration (missing file -> defaults)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Settings instance

    Example:
        >>> settings = load_settings("config/settings.yaml")
        >>> settings.num_clusters
        4
    """
    environ = os.environ if environ is None else environ
    config = load_config(config_path or environ.get("SEGMENTATION_CONFIG", DEFAULT_CONFIG_PATH))

    segmentation = config.get('segmentation', {}) or {}
    database = config.get('database', {}) or {}
    logging_cfg = config.get('logging', {}) or {}
    api = config.get('api', {}) or {}

    settings = Settings()

    settings.database_url = database.get('url', settings.database_url)
    settings.database_echo = bool(database.get('echo', settings.database_echo))
    settings.num_clusters = int(segmentation.get('num_clusters', settings.num_clusters))
    settings.max_iterations = int(segmentation.get('max_iterations', settings.max_iterations))
    settings.epsilon = float(segmentation.get('epsilon', settings.epsilon))
    random_seed = segmentation.get('random_seed')
    settings.random_seed = int(random_seed) if random_seed is not None else None
    settings.active_statuses = list(segmentation.get('active_statuses', settings.active_statuses))
    settings.completed_purchase_statuses = list(
        segmentation.get('completed_purchase_statuses', settings.completed_purchase_statuses)
    )
    settings.log_level = str(logging_cfg.get('level', settings.log_level)).upper()
    settings.cors_origins = list(api.get('cors_origins', settings.cors_origins))

    # Environment wins over the file
    if environ.get("SEGMENTATION_DATABASE_URL"):
        settings.database_url = environ["SEGMENTATION_DATABASE_URL"]
    if environ.get("SEGMENTATION_LOG_LEVEL"):
        settings.log_level = environ["SEGMENTATION_LOG_LEVEL"].upper()
    if environ.get("CORS_ORIGINS"):
        settings.cors_origins = environ["CORS_ORIGINS"].split(",")

    return settings


def setup_logging(log_level: str = "INFO"):
    """Configure logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
    )
