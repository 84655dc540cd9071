"""
Configuration
Settings are read from the environment, with a .env file loaded first.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

DEFAULT_MODEL = 'claude-sonnet-4-20250514'
EXHIBIT_TRANSPORTS = ('document', 'text')


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Config:
    anthropic_api_key: str = ''
    model: str = DEFAULT_MODEL
    extraction_max_tokens: int = 4000
    analysis_max_tokens: int = 8000
    max_attempts: int = 3
    retry_delay: float = 2.0
    retry_multiplier: float = 1.5
    exhibit_transport: str = 'document'
    max_upload_mb: int = 50
    log_level: str = 'INFO'
    host: str = '127.0.0.1'
    port: int = 5003
    debug: bool = False

    @classmethod
    def from_env(cls) -> 'Config':
        transport = os.getenv('EXHIBIT_TRANSPORT', 'document').strip().lower()
        if transport not in EXHIBIT_TRANSPORTS:
            raise ConfigurationError(
                f"Unsupported EXHIBIT_TRANSPORT '{transport}'",
                details=f"Use one of: {', '.join(EXHIBIT_TRANSPORTS)}",
            )
        return cls(
            anthropic_api_key=os.getenv('ANTHROPIC_API_KEY', '').strip(),
            model=os.getenv('ANTHROPIC_MODEL', DEFAULT_MODEL),
            extraction_max_tokens=int(os.getenv('EXTRACTION_MAX_TOKENS', '4000')),
            analysis_max_tokens=int(os.getenv('ANALYSIS_MAX_TOKENS', '8000')),
            max_attempts=int(os.getenv('MODEL_MAX_ATTEMPTS', '3')),
            retry_delay=float(os.getenv('MODEL_RETRY_DELAY', '2.0')),
            retry_multiplier=float(os.getenv('MODEL_RETRY_MULTIPLIER', '1.5')),
            exhibit_transport=transport,
            max_upload_mb=int(os.getenv('MAX_UPLOAD_MB', '50')),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            host=os.getenv('HOST', '127.0.0.1'),
            port=int(os.getenv('PORT', '5003')),
            debug=_env_bool('FLASK_DEBUG'),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.anthropic_api_key)

    def require_api_key(self):
        """Fail fast when the model credential is missing."""
        if not self.is_configured:
            raise ConfigurationError(
                'Anthropic API key not configured. Please add ANTHROPIC_API_KEY to .env file.'
            )
