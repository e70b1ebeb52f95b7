#!/usr/bin/env python3
"""Modular configuration system for the pledge ledger

Configuration hierarchy:
- infra_config: PostgreSQL endpoint and pool settings
- ledger_config: retry/backoff, cache TTL, slug allocation
- logging_config: Logging configuration
"""
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .infra_config import InfraConfig
from .ledger_config import LedgerConfig
from .logging_config import LoggingConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)


@dataclass
class Settings:
    """Aggregated settings for the ledger"""
    infra: InfraConfig = field(default_factory=InfraConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            infra=InfraConfig.from_env(),
            ledger=LedgerConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )


# Create global settings instance
settings = Settings.from_env()

def get_settings() -> Settings:
    """Get global settings instance"""
    return settings

def reload_settings() -> Settings:
    """Reload settings from environment"""
    global settings
    settings = Settings.from_env()
    return settings

__all__ = [
    'Settings',
    'get_settings',
    'reload_settings',
    'settings',
    'InfraConfig',
    'LedgerConfig',
    'LoggingConfig',
]
