import os
import logging
from dotenv import load_dotenv, find_dotenv

# Load a shared .env (prefer the working directory) without overriding real env vars
_ENV_PATH = find_dotenv(usecwd=True)
if _ENV_PATH:
    load_dotenv(_ENV_PATH, override=False)

logger = logging.getLogger(__name__)


def env_str(name: str, default: str = "") -> str:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip()


def env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        logger.warning(f"Invalid integer for {name}={os.getenv(name)!r}; using {default}")
        return default


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def env_path() -> str:
    """Path of the .env file that was loaded, or an empty string."""
    return _ENV_PATH or ""


# Storage
def use_cloud_storage() -> bool:
    return env_bool('USE_CLOUD_STORAGE', False)


def data_dir() -> str:
    return env_str('DATA_DIR', 'game_data') or 'game_data'


def dynamodb_table() -> str:
    return env_str('DYNAMODB_TABLE', 'wordgroups') or 'wordgroups'


def aws_region() -> str:
    return env_str('AWS_REGION', 'us-east-1') or 'us-east-1'


# Puzzle authoring
def max_daily_generations() -> int:
    return env_int('MAX_DAILY_GENERATIONS', 100)


def openrouter_model() -> str:
    return env_str('OPENROUTER_MODEL', 'anthropic/claude-sonnet-4') or 'anthropic/claude-sonnet-4'


# Stats
def stats_max_retries() -> int:
    return max(1, env_int('STATS_MAX_RETRIES', 5))


# Admin
def admin_token_ttl() -> int:
    return env_int('ADMIN_TOKEN_TTL', 24 * 60 * 60)


# Logging / metrics
def log_level() -> str:
    return env_str('LOG_LEVEL', 'INFO').upper() or 'INFO'


def log_dir() -> str:
    return env_str('LOG_DIR', 'logs') or 'logs'


def cloudwatch_enabled() -> bool:
    return env_bool('ENABLE_CLOUDWATCH_METRICS', False)


def environment() -> str:
    return env_str('ENVIRONMENT', 'Development') or 'Development'
