"""Tests for Orchestrator.authorize()."""

import asyncio
from datetime import timedelta

import pytest

from conftest import FaultyHandlers, put_access_token, utcnow
from grantflow.service.errors import InvalidScopeError, InvalidTokenError, ServerError
from grantflow.service.options import OrchestratorOptions
from grantflow.service.orchestrator import Orchestrator


@pytest.fixture
def live_token(handlers):
    return put_access_token(
        handlers, "live", "all flintstones", "fred", utcnow() + timedelta(hours=1)
    )


class TestExpiry:
    async def test_expired_token_rejected(self, orchestrator):
        # seeded tokens expire at fixture creation time
        with pytest.raises(InvalidTokenError) as excinfo:
            await orchestrator.authorize("access3", "")
        assert str(excinfo.value) == "token: Expired access token"
        assert excinfo.value.status == 401

    async def test_past_timestamp_rejected(self, handlers, orchestrator):
        put_access_token(handlers, "old", "all", "fred", utcnow() - timedelta(seconds=1))
        with pytest.raises(InvalidTokenError):
            await orchestrator.authorize("old", "all")

    async def test_future_timestamp_accepted(self, orchestrator, live_token):
        await orchestrator.authorize(live_token.token, "all")

    async def test_naive_expiry_read_as_utc(self, handlers, orchestrator):
        naive = (utcnow() + timedelta(hours=1)).replace(tzinfo=None)
        put_access_token(handlers, "naive", "all", "fred", naive)
        await orchestrator.authorize("naive", "all")

    async def test_injected_clock(self, handlers, live_token):
        later = Orchestrator(handlers, clock=lambda: utcnow() + timedelta(days=1))
        with pytest.raises(InvalidTokenError):
            await later.authorize(live_token.token, "")


class TestLookup:
    async def test_unknown_token(self, orchestrator):
        with pytest.raises(InvalidTokenError) as excinfo:
            await orchestrator.authorize("nope", "")
        assert excinfo.value.context == "Orchestrator.authorize.retrieve_access_token"

    async def test_handler_failure_wrapped(self, handlers):
        faulty = FaultyHandlers(handlers, {"retrieve_access_token": RuntimeError("oops")})
        with pytest.raises(InvalidTokenError) as excinfo:
            await Orchestrator(faulty).authorize("live", "")
        assert isinstance(excinfo.value.inner, RuntimeError)

    async def test_malformed_record_becomes_server_error(self, handlers, live_token):
        live_token.expires = "tomorrow"
        with pytest.raises(ServerError):
            await Orchestrator(handlers).authorize(live_token.token, "")


class TestScope:
    async def test_empty_requirement_accepted(self, orchestrator, live_token):
        await orchestrator.authorize(live_token.token, "")
        await orchestrator.authorize(live_token.token, None)

    async def test_subset_accepted(self, orchestrator, live_token):
        await orchestrator.authorize(live_token.token, "flintstones")
        await orchestrator.authorize(live_token.token, "flintstones all")

    async def test_missing_scope_rejected(self, orchestrator, live_token):
        with pytest.raises(InvalidScopeError) as excinfo:
            await orchestrator.authorize(live_token.token, "rubbles")
        assert excinfo.value.error == "invalid_scope"
        assert excinfo.value.context == "Orchestrator.authorize.check_scope"

    async def test_superuser_scope(self, handlers):
        put_access_token(handlers, "boss", "root", "slate", utcnow() + timedelta(hours=1))
        orchestrator = Orchestrator(handlers, OrchestratorOptions(superuser_scope="root"))
        await orchestrator.authorize("boss", "rubbles flintstones quarry")


class TestIdempotence:
    async def test_repeated_calls_succeed_without_side_effects(
        self, handlers, orchestrator, live_token
    ):
        snapshot = dict(handlers.access_tokens), dict(handlers.refresh_tokens)
        for _ in range(5):
            await orchestrator.authorize(live_token.token, "all")
        await asyncio.gather(
            *(orchestrator.authorize(live_token.token, "flintstones") for _ in range(10))
        )
        assert (dict(handlers.access_tokens), dict(handlers.refresh_tokens)) == snapshot
        assert live_token.scope == "all flintstones"
