"""
Tests for registrations, fan-out, and the factory invoker.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from lambdakit.config import CacheOptions, RegistrationOptions
from lambdakit.pipeline import (
    ConfigurationError,
    ExecutionContext,
    FactoryInvoker,
    InvalidFactoryResultError,
    Registration,
    fan_out,
    merge_contributions,
)


def make_registration(factory, *, enabled=True, max_age=1_000):
    options = RegistrationOptions(cache=CacheOptions(enabled=enabled, max_age=max_age))
    return Registration.create(factory, options)


@pytest.fixture
def ctx(sample_event, sample_meta):
    return ExecutionContext(sample_event, sample_meta, {"STAGE": "test"})


# =============================================================================
# Registration
# =============================================================================


class TestRegistration:
    """Tests for Registration.create validation."""

    def test_single_factory(self):
        def create_db(ctx):
            return {"db": "client"}

        registration = make_registration(create_db)

        assert registration.factories == (create_db,)
        assert registration.is_group is False
        assert registration.name == "registration[0]"
        assert registration.factory_names[0].endswith("create_db")

    def test_factory_list(self):
        registration = make_registration([lambda ctx: {}, lambda ctx: {}])
        assert registration.is_group is True
        assert len(registration.factories) == 2

    def test_cache_built_from_options(self):
        registration = make_registration(lambda ctx: {}, enabled=False, max_age=42)
        assert registration.cache.enabled is False
        assert registration.cache.max_age == 42

    @pytest.mark.parametrize("factory", [None, "create_db", 42, {"db": "client"}])
    def test_rejects_non_callable(self, factory):
        with pytest.raises(ConfigurationError):
            make_registration(factory)

    def test_rejects_empty_list(self):
        with pytest.raises(ConfigurationError):
            make_registration([])

    def test_rejects_list_with_non_callable(self):
        with pytest.raises(ConfigurationError, match="position 1"):
            make_registration([lambda ctx: {}, "nope"])


# =============================================================================
# Fan-out and merging
# =============================================================================


class TestFanOut:
    """Tests for the fan_out primitive."""

    @pytest.mark.asyncio
    async def test_results_in_declaration_order(self):
        async def slow(x):
            await asyncio.sleep(0.02)
            return "slow"

        async def fast(x):
            return "fast"

        assert await fan_out([slow, fast], None) == ["slow", "fast"]

    @pytest.mark.asyncio
    async def test_all_started_before_any_awaited(self):
        ready = asyncio.Event()

        async def waiter(x):
            await ready.wait()
            return "waiter"

        def setter(x):
            ready.set()
            return "setter"

        # Sequential execution would block forever on the first function
        results = await asyncio.wait_for(fan_out([waiter, setter], None), timeout=1.0)
        assert results == ["waiter", "setter"]

    @pytest.mark.asyncio
    async def test_first_failure_in_declaration_order_is_raised(self):
        first = ValueError("first")
        second = RuntimeError("second")

        async def fails_late(x):
            await asyncio.sleep(0.02)
            raise first

        async def fails_early(x):
            raise second

        with pytest.raises(ValueError) as exc_info:
            await fan_out([fails_late, fails_early], None)
        assert exc_info.value is first

    @pytest.mark.asyncio
    async def test_waits_for_all_before_raising(self):
        finished = []

        async def fails(x):
            raise ValueError("boom")

        async def completes(x):
            await asyncio.sleep(0.01)
            finished.append("completes")
            return {}

        with pytest.raises(ValueError):
            await fan_out([fails, completes], None)
        assert finished == ["completes"]


class TestMergeContributions:
    """Tests for merge_contributions."""

    def test_later_wins(self):
        merged = merge_contributions([{"k": 1, "a": 1}, {"k": 2}], ["f1", "f2"])
        assert merged == {"k": 2, "a": 1}

    def test_none_contributes_nothing(self):
        assert merge_contributions([None, {"a": 1}], ["f1", "f2"]) == {"a": 1}

    def test_non_mapping_rejected(self):
        with pytest.raises(InvalidFactoryResultError) as exc_info:
            merge_contributions([["not", "a", "mapping"]], ["create_db"])
        assert exc_info.value.factory_name == "create_db"
        assert exc_info.value.result_type == "list"
        assert isinstance(exc_info.value, TypeError)


# =============================================================================
# FactoryInvoker
# =============================================================================


class TestFactoryInvoker:
    """Tests for FactoryInvoker.resolve."""

    @pytest.mark.asyncio
    async def test_sync_factory(self, ctx, clock):
        registration = make_registration(lambda c: {"db": "client"})
        deps, cache_hit = await FactoryInvoker(clock).resolve(registration, ctx)

        assert dict(deps) == {"db": "client"}
        assert cache_hit is False

    @pytest.mark.asyncio
    async def test_async_factory(self, ctx, clock):
        factory = AsyncMock(return_value={"db": "client"})
        registration = make_registration(factory)

        deps, _ = await FactoryInvoker(clock).resolve(registration, ctx)

        assert dict(deps) == {"db": "client"}
        factory.assert_awaited_once_with(ctx)

    @pytest.mark.asyncio
    async def test_factory_sees_context(self, ctx, clock):
        ctx.merge({"region": "eu-west-1"}, source="registration[0]")

        def create_db(c):
            return {"db": f"{c['region']}/{c.env['STAGE']}/{c.event['httpMethod']}"}

        deps, _ = await FactoryInvoker(clock).resolve(make_registration(create_db), ctx)
        assert deps["db"] == "eu-west-1/test/GET"

    @pytest.mark.asyncio
    async def test_result_is_read_only(self, ctx, clock):
        deps, _ = await FactoryInvoker(clock).resolve(
            make_registration(lambda c: {"db": "client"}), ctx
        )
        with pytest.raises(TypeError):
            deps["db"] = "other"  # type: ignore[index]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_factory(self, ctx, clock):
        factory = MagicMock(return_value={"db": "client"})
        registration = make_registration(factory, max_age=1_000)
        invoker = FactoryInvoker(clock)

        first, first_hit = await invoker.resolve(registration, ctx)
        clock.advance(999)
        second, second_hit = await invoker.resolve(registration, ctx)

        assert factory.call_count == 1
        assert first_hit is False
        assert second_hit is True
        assert second is first

    @pytest.mark.asyncio
    async def test_expired_entry_reinvokes(self, ctx, clock):
        factory = MagicMock(return_value={"db": "client"})
        registration = make_registration(factory, max_age=1_000)
        invoker = FactoryInvoker(clock)

        await invoker.resolve(registration, ctx)
        clock.advance(1_000)
        _, cache_hit = await invoker.resolve(registration, ctx)

        assert factory.call_count == 2
        assert cache_hit is False
        assert registration.cache.entry.stored_at == clock.now

    @pytest.mark.asyncio
    async def test_disabled_cache_always_invokes(self, ctx, clock):
        factory = MagicMock(return_value={"db": "client"})
        registration = make_registration(factory, enabled=False)
        invoker = FactoryInvoker(clock)

        for _ in range(3):
            _, cache_hit = await invoker.resolve(registration, ctx)
            assert cache_hit is False

        assert factory.call_count == 3

    @pytest.mark.asyncio
    async def test_group_merges_disjoint_keys(self, ctx, clock):
        async def create_db(c):
            await asyncio.sleep(0.02)
            return {"db": "client"}

        async def create_ids(c):
            await asyncio.sleep(0.01)
            return {"ids": "generator"}

        def create_clock(c):
            return {"clock": "utc"}

        registration = make_registration([create_db, create_ids, create_clock])
        deps, _ = await FactoryInvoker(clock).resolve(registration, ctx)

        assert dict(deps) == {"db": "client", "ids": "generator", "clock": "utc"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("first_delay,second_delay", [(0.02, 0.0), (0.0, 0.02)])
    async def test_group_later_declared_wins(self, ctx, clock, first_delay, second_delay):
        async def first(c):
            await asyncio.sleep(first_delay)
            return {"db": "first"}

        async def second(c):
            await asyncio.sleep(second_delay)
            return {"db": "second"}

        deps, _ = await FactoryInvoker(clock).resolve(make_registration([first, second]), ctx)
        assert deps["db"] == "second"

    @pytest.mark.asyncio
    async def test_failure_leaves_empty_cache_untouched(self, ctx, clock):
        error = ConnectionError("datastore unreachable")
        registration = make_registration(AsyncMock(side_effect=error))

        with pytest.raises(ConnectionError) as exc_info:
            await FactoryInvoker(clock).resolve(registration, ctx)

        assert exc_info.value is error
        assert registration.cache.entry is None

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_entry(self, ctx, clock):
        factory = MagicMock(side_effect=[{"db": "v1"}, ValueError("boom")])
        registration = make_registration(factory, max_age=1_000)
        invoker = FactoryInvoker(clock)

        await invoker.resolve(registration, ctx)
        stored_at = registration.cache.entry.stored_at
        clock.advance(5_000)

        with pytest.raises(ValueError):
            await invoker.resolve(registration, ctx)

        assert registration.cache.entry.stored_at == stored_at
        assert dict(registration.cache.entry.value) == {"db": "v1"}

    @pytest.mark.asyncio
    async def test_group_failure_stores_nothing(self, ctx, clock):
        def ok(c):
            return {"db": "client"}

        def broken(c):
            raise RuntimeError("bad config")

        registration = make_registration([ok, broken])

        with pytest.raises(RuntimeError, match="bad config"):
            await FactoryInvoker(clock).resolve(registration, ctx)
        assert registration.cache.entry is None

    @pytest.mark.asyncio
    async def test_invalid_result_stores_nothing(self, ctx, clock):
        registration = make_registration(lambda c: "client")

        with pytest.raises(InvalidFactoryResultError):
            await FactoryInvoker(clock).resolve(registration, ctx)
        assert registration.cache.entry is None
