"""Configuration management for bankview."""

import os
import logging
from typing import Dict, Any, Optional
from pathlib import Path
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = 'http://localhost:8080/api'
VIEWS = ('user', 'admin', 'history', 'users', 'user-detail')

# Environment variable for each transaction history filter, keyed by API parameter
HISTORY_FILTER_ENV = {
    'accountNumber': 'HISTORY_ACCOUNT_NUMBER',
    'transactionType': 'HISTORY_TRANSACTION_TYPE',
    'startDate': 'HISTORY_START_DATE',
    'endDate': 'HISTORY_END_DATE',
    'minAmount': 'HISTORY_MIN_AMOUNT',
    'maxAmount': 'HISTORY_MAX_AMOUNT',
}


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _str_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def load_config() -> Dict[str, Any]:
    """
    Load configuration from environment variables and return structured config.

    Returns:
        Dict containing configuration sections for api, dashboard and app settings.
    """
    # Load environment variables from .env file
    env_path = Path(__file__).parent.parent / '.env'
    if env_path.exists():
        load_dotenv(env_path)
        logger.info(f"Loaded configuration from {env_path}")
    else:
        logger.warning("No .env file found, using environment variables only")

    config = {
        'api': {
            'base_url': os.getenv('BANK_API_BASE_URL', DEFAULT_API_BASE_URL),
            'auth_token': os.getenv('BANK_API_TOKEN'),
            # 0 disables the client-side timeout
            'request_timeout': _int_env('BANK_REQUEST_TIMEOUT', 0),
        },
        'dashboard': {
            'view': os.getenv('DASHBOARD_VIEW', 'user').strip().lower(),
            'recent_transactions_size': _int_env('RECENT_TRANSACTIONS_SIZE', 5),
            'series_window_days': _int_env('SERIES_WINDOW_DAYS', 7),
            # 0 keeps the per-account enrichment fan-out unbounded
            'enrichment_concurrency': _int_env('ENRICHMENT_CONCURRENCY', 0),
            'user_id': _str_env('USER_ID'),
            'search': _str_env('SEARCH_TERM'),
            'page': _int_env('PAGE', 0),
            'history_filters': {
                param: _str_env(env_name)
                for param, env_name in HISTORY_FILTER_ENV.items()
                if _str_env(env_name) is not None
            },
        },
        'app': {
            'debug': os.getenv('DEBUG', 'False').lower() == 'true',
            'log_level': os.getenv('LOG_LEVEL', 'INFO'),
        }
    }

    _validate_config(config)

    return config


def _validate_config(config: Dict[str, Any]) -> None:
    """
    Validate that required configuration values are present.

    Args:
        config: Configuration dictionary to validate.

    Raises:
        ValueError: If required configuration is missing or out of range.
    """
    if not config['api']['base_url']:
        raise ValueError("BANK_API_BASE_URL missing; cannot proceed.")
    if not config['api']['auth_token']:
        logger.warning("BANK_API_TOKEN not set. Requests will be sent without an Authorization header.")
    dashboard = config['dashboard']
    if dashboard['view'] not in VIEWS:
        raise ValueError(f"DASHBOARD_VIEW must be one of {VIEWS}, got {dashboard['view']!r}")
    if dashboard['series_window_days'] not in (7, 30):
        raise ValueError("SERIES_WINDOW_DAYS must be 7 or 30")
    if dashboard['enrichment_concurrency'] < 0:
        raise ValueError("ENRICHMENT_CONCURRENCY cannot be negative")
    if dashboard['page'] < 0:
        raise ValueError("PAGE cannot be negative")
    if dashboard['view'] == 'user-detail' and not dashboard['user_id']:
        raise ValueError("USER_ID is required for the user-detail view")
    logger.info("Configuration validation completed")
