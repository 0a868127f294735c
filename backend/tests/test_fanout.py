"""
Fan-out tests: concurrent source queries with independent timeouts,
partial failure absorbed into the merge.
"""

import asyncio

import pytest

from conftest import FakeAdapter
from shopscan.core.errors import PreconditionViolation, ProductNotFoundError, SourceError
from shopscan.core.fanout import gather_settled, resolve_product
from shopscan.schemas.products import SourceRecord


class TestGatherSettled:
    @pytest.mark.asyncio
    async def test_one_outcome_per_task(self):
        async def ok():
            return 1

        async def boom():
            raise RuntimeError("boom")

        outcomes = await gather_settled({"ok": ok, "boom": boom}, per_task_timeout=1)
        by_key = {o.key: o for o in outcomes}

        assert by_key["ok"].ok and by_key["ok"].value == 1
        assert not by_key["boom"].ok
        assert isinstance(by_key["boom"].error, RuntimeError)

    @pytest.mark.asyncio
    async def test_outcomes_in_arrival_order(self):
        async def slow():
            await asyncio.sleep(0.05)
            return "slow"

        async def fast():
            return "fast"

        outcomes = await gather_settled({"slow": slow, "fast": fast}, per_task_timeout=1)
        assert [o.key for o in outcomes] == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_per_task_timeout_does_not_cancel_siblings(self):
        async def hang():
            await asyncio.sleep(10)

        async def ok():
            await asyncio.sleep(0.02)
            return "done"

        outcomes = await gather_settled({"hang": hang, "ok": ok}, per_task_timeout=0.1, overall_deadline=5)
        by_key = {o.key: o for o in outcomes}

        assert by_key["ok"].value == "done"
        assert isinstance(by_key["hang"].error, SourceError)

    @pytest.mark.asyncio
    async def test_overall_deadline_cancels_stragglers(self):
        async def hang():
            await asyncio.sleep(10)

        loop = asyncio.get_running_loop()
        start = loop.time()
        outcomes = await gather_settled({"hang": hang}, per_task_timeout=None, overall_deadline=0.1)

        assert loop.time() - start < 2
        assert len(outcomes) == 1 and not outcomes[0].ok

    @pytest.mark.asyncio
    async def test_no_tasks(self):
        assert await gather_settled({}) == []


class TestResolveProduct:
    @pytest.mark.asyncio
    async def test_timeout_source_is_absorbed(self):
        adapter1 = FakeAdapter("adapter1", SourceRecord(source_tag="adapter1", name="Widget", brand="Acme"))
        adapter2 = FakeAdapter("adapter2", SourceRecord(source_tag="adapter2", name="Longer Widget Name"), delay=5)

        product = await resolve_product(
            "012345678905",
            [adapter1, adapter2],
            source_priority=["adapter1", "adapter2"],
            per_source_timeout=0.1,
            overall_deadline=1,
        )

        assert product.name == "Widget"
        assert product.brand == "Acme"
        assert product.contributing_sources == ["adapter1"]

    @pytest.mark.asyncio
    async def test_failing_source_is_absorbed(self, failing_error):
        good = FakeAdapter("good", SourceRecord(source_tag="good", name="Widget"))
        bad = FakeAdapter("broken", error=failing_error)

        product = await resolve_product("012345678905", [good, bad], per_source_timeout=1)
        assert product.contributing_sources == ["good"]

    @pytest.mark.asyncio
    async def test_not_found_when_every_source_fails_or_is_empty(self, failing_error):
        adapters = [
            FakeAdapter("none", None),
            FakeAdapter("empty", SourceRecord(source_tag="empty")),
            FakeAdapter("broken", error=failing_error),
        ]
        with pytest.raises(ProductNotFoundError):
            await resolve_product("012345678905", adapters, per_source_timeout=1)

    @pytest.mark.asyncio
    async def test_disabled_adapters_are_not_queried(self):
        on = FakeAdapter("on", SourceRecord(source_tag="on", name="Widget"))
        off = FakeAdapter("off", SourceRecord(source_tag="off", name="Other"), enabled=False)

        await resolve_product("012345678905", [on, off], per_source_timeout=1)
        assert on.calls == ["012345678905"]
        assert off.calls == []

    @pytest.mark.asyncio
    async def test_arrival_order_does_not_change_result(self):
        rec_a = SourceRecord(source_tag="a", name="Widget", brand="Acme")
        rec_b = SourceRecord(source_tag="b", name="Widget", brand="Acme Corp")

        a_first = await resolve_product(
            "X12345", [FakeAdapter("a", rec_a), FakeAdapter("b", rec_b, delay=0.05)], ["a", "b"], 1
        )
        b_first = await resolve_product(
            "X12345", [FakeAdapter("a", rec_a, delay=0.05), FakeAdapter("b", rec_b)], ["a", "b"], 1
        )
        assert a_first == b_first
        assert a_first.brand == "Acme"

    @pytest.mark.asyncio
    async def test_duplicate_source_tags_rejected(self):
        rec = SourceRecord(source_tag="dup", name="Widget")
        with pytest.raises(PreconditionViolation):
            await resolve_product("X12345", [FakeAdapter("dup", rec), FakeAdapter("dup", rec)])
