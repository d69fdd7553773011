"""Banking API connector: fetches parsed JSON from the banking service."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from .errors import HttpError, TransportError

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = 'Session expired. Please login again.'


def _decode(text: str) -> Any:
    """Best-effort decode of an error body; falls back to the raw text."""
    try:
        return json.loads(text) if text.strip() else None
    except ValueError:
        return text


class BankConnector:
    """Thin async HTTP client for the banking service. Performs no retries."""

    def __init__(self, api_config: Dict[str, Any]):
        """
        Initialize bank connector.

        Args:
            api_config: The ``api`` section of the configuration: base_url,
                auth_token and request_timeout (seconds, falsy for none).
        """
        self.base_url = api_config['base_url'].rstrip('/')
        self.auth_token: Optional[str] = api_config.get('auth_token')
        request_timeout = api_config.get('request_timeout')
        self.timeout = aiohttp.ClientTimeout(total=request_timeout or None)

        logger.info(f"Bank Connector initialized for {self.base_url}")

    def _headers(self) -> Dict[str, str]:
        headers = {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }
        if self.auth_token:
            headers['Authorization'] = f'Bearer {self.auth_token}'
        return headers

    async def fetch_json(
        self,
        endpoint: str,
        method: str = 'GET',
        body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Call an endpoint and return the decoded JSON body.

        Args:
            endpoint: Path below the base URL, e.g. ``/accounts``.
            method: HTTP method.
            body: JSON payload, sent for non-GET requests only.
            params: Query parameters; None values are dropped.

        Returns:
            Parsed JSON; ``{}`` for an empty body.

        Raises:
            HttpError: For non-2xx responses.
            TransportError: For connection failures, timeouts and undecodable bodies.
        """
        url = f"{self.base_url}{endpoint}"
        query = {key: str(value) for key, value in (params or {}).items() if value is not None and value != ''}
        payload = body if body is not None and method.upper() != 'GET' else None

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, headers=self._headers(), params=query, json=payload) as response:
                    text = await response.text()
                    if response.status == 401:
                        logger.error(f"{method} {endpoint} rejected: session expired")
                        raise HttpError(401, _decode(text), SESSION_EXPIRED_MESSAGE)
                    if response.status < 200 or response.status >= 300:
                        error_body = _decode(text)
                        message = None
                        if isinstance(error_body, dict):
                            message = error_body.get('message')
                        message = message or f"HTTP {response.status}: {response.reason}"
                        logger.error(f"{method} {endpoint} failed: {message}")
                        raise HttpError(response.status, error_body, message)
                    if not text.strip():
                        return {}
                    try:
                        return json.loads(text)
                    except ValueError as e:
                        raise TransportError(f"Invalid JSON from {endpoint}: {e}") from e
        except TransportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"{method} {endpoint} failed: {e}")
            raise TransportError(str(e) or 'Network error occurred') from e

    async def get_user_accounts(self) -> Any:
        return await self.fetch_json('/accounts')

    async def get_account_by_number(self, account_number: str) -> Any:
        return await self.fetch_json(f'/accounts/{account_number}')

    async def get_low_balance_accounts(self, threshold: int = 100) -> Any:
        return await self.fetch_json('/accounts/low-balance', params={'threshold': threshold})

    async def get_total_system_balance(self) -> Any:
        return await self.fetch_json('/accounts/total-balance')

    async def get_transaction_history(self, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.fetch_json('/transactions/history', params=params)

    async def get_all_transactions(self, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.fetch_json('/transactions/admin/all', params=params)

    async def get_user_transactions(self, user_id: Any, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.fetch_json(f'/transactions/user/{user_id}', params=params)

    async def get_account_transaction_count(self, account_number: str) -> Any:
        """History page of size 1 for one account; the page total is the count."""
        return await self.fetch_json(
            '/transactions/history',
            params={'accountNumber': account_number, 'size': 1},
        )

    async def get_all_users(self, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.fetch_json('/users', params=params)

    async def get_user_by_id(self, user_id: Any) -> Any:
        return await self.fetch_json(f'/users/{user_id}')
