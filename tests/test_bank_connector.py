"""
Tests for the banking API connector against a local aiohttp server.
"""
from contextlib import asynccontextmanager

import pytest
from aiohttp import test_utils, web

from bankview.data.bank_connector import SESSION_EXPIRED_MESSAGE, BankConnector
from bankview.data.errors import HttpError, TransportError


@asynccontextmanager
async def serve(routes, token="test-token"):
    """Run an app with ``routes`` under /api and yield a connector pointed at it."""
    app = web.Application()
    app.add_routes(routes)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield BankConnector({
            'base_url': str(server.make_url('/api/')),
            'auth_token': token,
            'request_timeout': 5,
        })
    finally:
        await server.close()


class TestSuccessfulCalls:
    """2xx responses come back as parsed JSON."""

    @pytest.mark.asyncio
    async def test_returns_parsed_json(self):
        async def accounts(request):
            return web.json_response({"accounts": [{"accountNumber": "1234567890"}]})

        async with serve([web.get('/api/accounts', accounts)]) as connector:
            result = await connector.get_user_accounts()

        assert result == {"accounts": [{"accountNumber": "1234567890"}]}

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        seen = {}

        async def users(request):
            seen['auth'] = request.headers.get('Authorization')
            return web.json_response([])

        async with serve([web.get('/api/users/7', users)]) as connector:
            await connector.get_user_by_id(7)

        assert seen['auth'] == 'Bearer test-token'

    @pytest.mark.asyncio
    async def test_no_token_no_header(self):
        seen = {}

        async def users(request):
            seen['auth'] = request.headers.get('Authorization')
            return web.json_response([])

        async with serve([web.get('/api/users', users)], token=None) as connector:
            await connector.get_all_users()

        assert seen['auth'] is None

    @pytest.mark.asyncio
    async def test_query_params_drop_empty_values(self):
        seen = {}

        async def history(request):
            seen['query'] = dict(request.query)
            return web.json_response({"transactionDetails": []})

        async with serve([web.get('/api/transactions/history', history)]) as connector:
            await connector.get_transaction_history({'size': 5, 'search': None, 'type': ''})

        assert seen['query'] == {'size': '5'}

    @pytest.mark.asyncio
    async def test_endpoint_paths(self):
        seen = []

        async def record(request):
            seen.append((request.path, dict(request.query)))
            return web.json_response({})

        routes = [
            web.get('/api/accounts/low-balance', record),
            web.get('/api/accounts/total-balance', record),
            web.get('/api/transactions/admin/all', record),
            web.get('/api/transactions/user/3', record),
            web.get('/api/transactions/history', record),
        ]
        async with serve(routes) as connector:
            await connector.get_low_balance_accounts(100)
            await connector.get_total_system_balance()
            await connector.get_all_transactions({'size': 10})
            await connector.get_user_transactions(3, {'page': 0})
            await connector.get_account_transaction_count('1234567890')

        assert seen == [
            ('/api/accounts/low-balance', {'threshold': '100'}),
            ('/api/accounts/total-balance', {}),
            ('/api/transactions/admin/all', {'size': '10'}),
            ('/api/transactions/user/3', {'page': '0'}),
            ('/api/transactions/history', {'accountNumber': '1234567890', 'size': '1'}),
        ]

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self):
        async def echo(request):
            return web.json_response(await request.json())

        async with serve([web.post('/api/echo', echo)]) as connector:
            result = await connector.fetch_json('/echo', method='POST', body={'amount': '10.00'})

        assert result == {'amount': '10.00'}

    @pytest.mark.asyncio
    async def test_empty_body_is_empty_object(self):
        async def empty(request):
            return web.Response(status=200, body=b'')

        async with serve([web.get('/api/accounts', empty)]) as connector:
            assert await connector.get_user_accounts() == {}


class TestFailures:
    """Every failure surfaces as a TransportError."""

    @pytest.mark.asyncio
    async def test_unauthorized_is_session_expired(self):
        async def denied(request):
            return web.json_response({"message": "Invalid token"}, status=401)

        async with serve([web.get('/api/accounts', denied)]) as connector:
            with pytest.raises(HttpError) as exc_info:
                await connector.get_user_accounts()

        assert exc_info.value.status == 401
        assert exc_info.value.message == SESSION_EXPIRED_MESSAGE

    @pytest.mark.asyncio
    async def test_server_message_used(self):
        async def broken(request):
            return web.json_response({"message": "Database unavailable"}, status=500)

        async with serve([web.get('/api/users', broken)]) as connector:
            with pytest.raises(HttpError) as exc_info:
                await connector.get_all_users()

        assert exc_info.value.status == 500
        assert exc_info.value.message == "Database unavailable"
        assert exc_info.value.body == {"message": "Database unavailable"}

    @pytest.mark.asyncio
    async def test_status_text_when_no_message(self):
        async with serve([]) as connector:
            with pytest.raises(HttpError) as exc_info:
                await connector.get_account_by_number('0000')

        assert exc_info.value.status == 404
        assert exc_info.value.message == "HTTP 404: Not Found"

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async def html(request):
            return web.Response(text="<html>maintenance</html>", content_type='text/html')

        async with serve([web.get('/api/accounts', html)]) as connector:
            with pytest.raises(TransportError) as exc_info:
                await connector.get_user_accounts()

        assert not isinstance(exc_info.value, HttpError)
        assert "Invalid JSON from /accounts" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async with serve([]) as connector:
            base_url = connector.base_url
        # Server is closed now; the port refuses connections
        connector = BankConnector({'base_url': base_url})

        with pytest.raises(TransportError) as exc_info:
            await connector.get_user_accounts()

        assert not isinstance(exc_info.value, HttpError)
