from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Any, Optional
import json


def parse_name_list(v: Any) -> List[str]:
    """Parse a list of names from a JSON array or comma-separated string"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [item.strip() for item in v.split(',') if item.strip()]
    return []


class Settings(BaseSettings):
    """Live preview settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "livepreview"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # Empty means console only

    # ==========================================
    # Preview Bundler
    # ==========================================
    PREVIEW_ENTRY_KEY: str = "__entry__.tsx"
    PREVIEW_MOUNT_SELECTOR: str = "root"
    PREVIEW_REACT_VERSION: str = "19.2.3"
    PREVIEW_CDN_BASE: str = "https://esm.sh"
    PREVIEW_TAILWIND_CDN: str = "https://cdn.tailwindcss.com"
    PREVIEW_BABEL_CDN: str = "https://unpkg.com/@babel/standalone/babel.min.js"

    # Directories the CLI never loads into a source map
    PREVIEW_SKIP_DIRS_STR: str = "node_modules,.git,dist,build,.next,__pycache__"

    @property
    def PREVIEW_SKIP_DIRS(self) -> List[str]:
        """Parse skipped directories from comma-separated string"""
        return parse_name_list(self.PREVIEW_SKIP_DIRS_STR)

    # ==========================================
    # Ghost Fix (classification + repair loop)
    # ==========================================
    GHOST_FIX_MIN_CONFIDENCE: float = 0.7
    GHOST_FIX_MAX_ROUNDS: int = 3

    # ==========================================
    # Retry Queue (exponential backoff, seconds)
    # ==========================================
    RETRY_BASE_DELAY: float = 1.0
    RETRY_MAX_DELAY: float = 30.0
    RETRY_BACKOFF_MULTIPLIER: float = 2.0
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_CONCURRENCY: int = 1
    RETRY_JITTER: float = 0.1

    # ==========================================
    # Claude AI (repair collaborator)
    # ==========================================
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_BASE_URL: str = ""  # Empty means use default Anthropic URL
    CLAUDE_FIX_MODEL: str = "claude-3-5-haiku-20241022"
    CLAUDE_MAX_TOKENS: int = 8192
    CLAUDE_TEMPERATURE: float = 0.2
    CLAUDE_REQUEST_TIMEOUT: int = 120
    CLAUDE_CONNECT_TIMEOUT: int = 30
    CLAUDE_MAX_RETRIES: int = 2
    CLAUDE_RETRY_BASE_DELAY: float = 1.0
    CLAUDE_RETRY_MAX_DELAY: float = 10.0

    @field_validator("GHOST_FIX_MIN_CONFIDENCE", "RETRY_JITTER")
    @classmethod
    def _check_fraction(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("must be between 0 and 1")
        return v

    @field_validator("RETRY_MAX_ATTEMPTS", "RETRY_CONCURRENCY", "GHOST_FIX_MAX_ROUNDS")
    @classmethod
    def _check_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG


# Create settings instance
settings = Settings()
