"""CLI configuration.

Settings are read from ~/.bastion-access/config.yaml (optional), then
overridden by environment variables, then by command-line options.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".bastion-access" / "config.yaml"

ENV_OVERRIDES = {
    "BASTION_ACCESS_PROFILE": "aws_profile",
    "BASTION_ACCESS_REGION": "region",
    "BASTION_ACCESS_LOG_LEVEL": "log_level",
    "BASTION_ACCESS_AUDIT_DIR": "audit_dir",
}


@dataclass
class Config:
    """Application configuration.

    Attributes:
        aws_profile: AWS profile name (optional)
        region: AWS region (optional)
        log_level: Log level name
        audit_dir: Audit log directory (optional, default under the home directory)
        cleanup_retry_delay: Seconds between security group deletion attempts
        cleanup_max_retries: Deletion retries after the first attempt
    """

    aws_profile: Optional[str] = None
    region: Optional[str] = None
    log_level: str = "WARNING"
    audit_dir: Optional[str] = None
    cleanup_retry_delay: float = 3.0
    cleanup_max_retries: int = 15

    @classmethod
    def load(cls, path: Optional[Path] = None) -> Config:
        """Load configuration from file and environment.

        Args:
            path: Config file path (default: ~/.bastion-access/config.yaml)

        Raises:
            ValueError: If the config file is not a mapping
        """
        path = path or DEFAULT_CONFIG_PATH
        values: dict = {}

        if path.exists():
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Invalid config file {path}: expected a mapping")

            known = {f.name for f in fields(cls)}
            for key, value in data.items():
                if key in known:
                    values[key] = value
                else:
                    logger.warning(f"Ignoring unknown config key '{key}' in {path}")

        for env_var, key in ENV_OVERRIDES.items():
            if os.environ.get(env_var):
                values[key] = os.environ[env_var]

        config = cls(**values)
        config.cleanup_retry_delay = float(config.cleanup_retry_delay)
        config.cleanup_max_retries = int(config.cleanup_max_retries)
        return config
