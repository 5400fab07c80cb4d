"""Tests for Context: scope resolution, spawning, registers and limiters."""

from __future__ import annotations

import pytest

from sluice import Context, LimitExceededError
from sluice.context import Limiter, RenderSession, read_property
from sluice.environment.exceptions import InternalUndefinedVariableError
from sluice.environment.options import normalize_options
from sluice.utils.values import UNDEFINED


class TestResolutionOrder:
    """Scopes, then counters, then the environment, then globals."""

    def test_environment(self):
        ctx = Context({"a": 1})
        assert ctx.get("a") == 1

    def test_inner_scope_shadows_environment(self):
        ctx = Context({"a": 1})
        ctx.push({"a": 2})
        assert ctx.get("a") == 2
        ctx.pop()
        assert ctx.get("a") == 1

    def test_counters_between_scopes_and_environment(self):
        ctx = Context({"n": 1})
        ctx.counters["n"] = 5
        assert ctx.get("n") == 5
        ctx.push({"n": 9})
        assert ctx.get("n") == 9

    def test_globals_last(self):
        ctx = Context({"b": 1}, globals={"a": "global", "b": "global"})
        assert ctx.get("a") == "global"
        assert ctx.get("b") == 1

    def test_globals_default_to_options(self):
        opts = normalize_options(globals={"site": {"name": "docs"}})
        ctx = Context({}, opts)
        assert ctx.get("site.name") == "docs"

    def test_object_environment(self):
        class Data:
            title = "t"

        ctx = Context(Data(), own_property_only=False)
        assert ctx.get("title") == "t"

    def test_get_all_merges_layers(self):
        ctx = Context({"a": 1, "b": 1}, globals={"g": 0})
        ctx.counters["c"] = 3
        ctx.push({"b": 2})
        assert ctx.get_all() == {"g": 0, "a": 1, "b": 2, "c": 3}


class TestStrictLookup:
    def test_reports_failing_prefix(self):
        ctx = Context({"user": {}}, strict_variables=True)
        with pytest.raises(InternalUndefinedVariableError) as exc_info:
            ctx.get("user.name.first")
        assert exc_info.value.path == "user.name"

    def test_lenient_lookup_returns_undefined(self):
        assert Context({}).get("user.name") is UNDEFINED


class TestReadProperty:
    def test_negative_index(self):
        assert read_property([1, 2, 3], -1) == (3, False)

    def test_out_of_range_index(self):
        assert read_property([1], 4) == (UNDEFINED, False)

    def test_virtual_size(self):
        assert read_property("abcd", "size") == (4, False)

    def test_virtual_first_and_last_on_empty(self):
        assert read_property([], "first") == (UNDEFINED, False)
        assert read_property([], "last") == (UNDEFINED, False)

    def test_methods_report_called(self):
        class Greeter:
            def hello(self):
                return "hi"

        value, called = read_property(Greeter(), "hello", own_property_only=False)
        assert (value, called) == ("hi", True)

    def test_own_property_only_hides_class_attributes(self):
        class Config:
            mode = "debug"

        assert read_property(Config(), "mode", own_property_only=True) == (UNDEFINED, False)

    def test_dataclass_fields_are_own(self):
        from dataclasses import dataclass

        @dataclass(frozen=True, slots=True)
        class Point:
            x: int

        assert read_property(Point(3), "x", own_property_only=True) == (3, False)


class TestSpawn:
    """``spawn`` isolates scopes and registers but shares the limiters."""

    def test_fresh_scopes_counters_and_registers(self):
        parent = Context({"a": 1})
        parent.push({"local": True})
        parent.counters["n"] = 2
        parent.get_register("cycle")["k"] = 1

        child = parent.spawn({"b": 2})
        assert child.scopes == [{}]
        assert child.counters == {}
        assert child.get_register("cycle") == {}
        assert child.get("b") == 2
        assert child.get("a") is UNDEFINED

    def test_limiters_shared(self):
        parent = Context({}, memory_limit=10)
        child = parent.spawn()
        child.memory_limit.use(8)
        with pytest.raises(LimitExceededError):
            parent.memory_limit.use(5)
        assert child.render_limit is parent.render_limit

    def test_inherits_globals_and_strictness(self):
        parent = Context({}, globals={"g": 1}, strict_variables=True)
        child = parent.spawn()
        assert child.get("g") == 1
        assert child.strict_variables is True


class TestRegisters:
    def test_get_register_creates_dict(self):
        session = RenderSession()
        session.get_register("blocks")["x"] = 1
        assert session.registers == {"blocks": {"x": 1}}

    def test_save_and_restore(self):
        ctx = Context()
        ctx.set_register("block_mode", 1)
        saved = ctx.save_register("block_mode", "blocks")
        ctx.set_register("block_mode", 0)
        ctx.set_register("blocks", {"a": []})
        ctx.restore_register(saved)
        assert ctx.get_register("block_mode") == 1
        assert ctx.get_register("blocks") == {}


class TestLimiter:
    def test_use_accumulates(self):
        limiter = Limiter("memory alloc", 10)
        limiter.use(4)
        limiter.use(6)
        with pytest.raises(LimitExceededError) as exc_info:
            limiter.use(1)
        assert str(exc_info.value) == "memory alloc limit exceeded"

    def test_check_compares_single_reading(self):
        limiter = Limiter("template render", 100)
        limiter.check(99)
        limiter.check(99)
        with pytest.raises(LimitExceededError):
            limiter.check(101)

    def test_unbounded_by_default(self):
        ctx = Context()
        ctx.memory_limit.use(10**12)
