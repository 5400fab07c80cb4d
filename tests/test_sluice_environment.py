"""Tests for the Environment: options, registries, filters, escaping and templates."""

from __future__ import annotations

import dataclasses
import gc
import logging

import pytest

from sluice import (
    BUILTIN_TAGS,
    DictLoader,
    Environment,
    FilterContext,
    FilterDefinition,
    LimitExceededError,
    LRUCache,
    Tag,
    Template,
    UndefinedVariableError,
    normalize_options,
)
from sluice.template.value import Value

from .conftest import render


class UpperTag(Tag):
    """``{% upper value %}``: writes the value upper-cased."""

    def __init__(self, token, remaining, env, parser):
        super().__init__(token, remaining, env, parser)
        self.value = Value(self.tokenizer, env)

    def render(self, ctx, emitter):
        value = yield self.value.value(ctx)
        emitter.write(str(value).upper())

    def arguments(self):
        yield self.value


class DictCache:
    """Minimal custom cache."""

    def __init__(self):
        self.data = {}

    def read(self, key):
        return self.data.get(key)

    def write(self, key, value):
        self.data[key] = value

    def remove(self, key):
        self.data.pop(key, None)


class TestOptions:
    def test_defaults(self):
        opts = normalize_options()
        assert opts.root == (".",)
        assert opts.cache is None
        assert opts.strict_variables is False
        assert opts.own_property_only is True

    def test_unknown_option(self):
        with pytest.raises(TypeError, match="unknown option"):
            Environment(bogus=True)

    def test_root_propagates(self):
        opts = normalize_options(root="views", layouts=["layouts"])
        assert opts.root == ("views",)
        assert opts.partials == ("views",)
        assert opts.layouts == ("layouts",)

    @pytest.mark.parametrize(
        "value,limit",
        [(True, 1024), (16, 16)],
    )
    def test_cache_as_capacity(self, value, limit):
        cache = normalize_options(cache=value).cache
        assert isinstance(cache, LRUCache)
        assert cache.limit == limit

    @pytest.mark.parametrize("value", [False, 0, None])
    def test_cache_disabled(self, value):
        assert normalize_options(cache=value).cache is None

    def test_custom_cache(self):
        cache = DictCache()
        env = Environment(templates={"p": "P"}, cache=cache)
        assert render(env, "{% include 'p' %}") == "P"
        assert "partials:p" in cache.data

    def test_invalid_cache(self):
        with pytest.raises(TypeError, match="cache"):
            normalize_options(cache="yes")

    def test_templates_install_dict_loader(self):
        opts = normalize_options(templates={"a": "A"}, root="ignored")
        assert isinstance(opts.loader, DictLoader)
        assert opts.root == (".",)

    def test_jekyll_include_disables_dynamic_partials(self):
        assert normalize_options(jekyll_include=True).dynamic_partials is False
        opts = normalize_options(jekyll_include=True, dynamic_partials=True)
        assert opts.dynamic_partials is True

    def test_operators_merge_with_defaults(self):
        opts = normalize_options(operators={"~": lambda a, b, ctx=None: True})
        assert "~" in opts.operators
        assert "==" in opts.operators

    def test_loader_without_dirname_disables_relative_reference(self, caplog):
        class FlatLoader:
            def exists(self, path):
                return False

        with caplog.at_level(logging.WARNING, logger="sluice.environment.options"):
            opts = normalize_options(loader=FlatLoader())
        assert opts.relative_reference is False
        assert "relative_reference" in caplog.text

    def test_options_are_frozen(self):
        opts = normalize_options()
        with pytest.raises(dataclasses.FrozenInstanceError):
            opts.strict_variables = True  # type: ignore[misc]


class TestFilters:
    def test_register_filter(self, env):
        env.register_filter("upcase", str.upper)
        assert render(env, "{{ 'abc' | upcase }}") == "ABC"

    def test_positional_and_keyword_arguments(self, env):
        def pad(value, width, fill=" "):
            return str(value).ljust(int(width), fill)

        env.register_filter("pad", pad)
        assert render(env, "{{ 'x' | pad: 3, fill: '-' }}") == "x--"

    def test_chain(self, env):
        env.register_filter("upcase", str.upper)
        env.register_filter("twice", lambda v: v * 2)
        assert render(env, "{{ 'ab' | upcase | twice }}") == "ABAB"

    def test_pass_context(self, env):
        seen = []

        def site_prefix(fctx, value):
            seen.append(fctx)
            return f"{fctx.context.get('site')}/{value}"

        env.register_filter("site_prefix", site_prefix, pass_context=True)
        assert render(env, "{{ 'page' | site_prefix }}", {"site": "docs"}) == "docs/page"
        assert isinstance(seen[0], FilterContext)
        assert seen[0].env is env

    def test_registry_is_dict_like(self, env):
        env.filters["lower"] = str.lower
        assert "lower" in env.filters
        assert isinstance(env.filters["lower"], FilterDefinition)
        del env.filters["lower"]
        assert "lower" not in env.filters

    def test_registry_swaps_on_write(self, env):
        before = env.filters.copy()
        env.filters.update({"a": str.upper, "b": str.lower})
        assert before == {}
        assert sorted(env.filters.keys()) == ["a", "b"]

    def test_plugin(self, env):
        def shout_plugin(target):
            target.register_filter("shout", lambda v: f"{v}!")
            return "installed"

        assert env.plugin(shout_plugin) == "installed"
        assert render(env, "{{ 'hey' | shout }}") == "hey!"


class TestTags:
    def test_builtin_tags_registered(self, env):
        assert set(BUILTIN_TAGS) <= set(env.tags.keys())
        assert "for" in env.tags

    def test_register_tag(self, env):
        env.register_tag("upper", UpperTag)
        assert render(env, "{% upper name %}", {"name": "ada"}) == "ADA"

    def test_custom_tag_in_analysis(self, env):
        env.register_tag("upper", UpperTag)
        assert env.variables("{% upper user.name %}") == ["user"]

    def test_custom_tag_async(self, env):
        import asyncio

        env.register_tag("upper", UpperTag)
        result = asyncio.run(env.parse_and_render_async("{% upper 'x' %}"))
        assert result == "X"


class TestOutputEscape:
    def test_escape(self, env_escape):
        data = {"v": "<a href=\"x\">'&"}
        assert render(env_escape, "{{ v }}", data) == "&lt;a href=&#34;x&#34;&gt;&#39;&amp;"

    def test_raw_filter_skips_escape(self, env_escape):
        env_escape.register_filter("safe", lambda v: v, raw=True)
        assert render(env_escape, "{{ v | safe }}", {"v": "<b>"}) == "<b>"

    def test_text_and_echo_are_not_escaped(self, env_escape):
        assert render(env_escape, "<p>{% echo v %}</p>", {"v": "<b>"}) == "<p><b></p>"

    def test_escape_charges_memory(self):
        env = Environment(output_escape="escape", memory_limit=5)
        with pytest.raises(LimitExceededError):
            render(env, "{{ v }}", {"v": "123456"})

    def test_json(self):
        env = Environment(output_escape="json")
        assert render(env, "{{ v }}", {"v": {"a": [1, "x"]}}) == '{"a": [1, "x"]}'
        assert render(env, "{{ missing }}") == "null"

    def test_callable(self):
        env = Environment(output_escape=lambda v: f"[{v}]")
        assert render(env, "{{ 'x' }}-{{ 1 }}") == "[x]-[1]"

    def test_invalid(self):
        with pytest.raises(TypeError, match="output_escape"):
            Environment(output_escape=42)


class TestKeepOutputType:
    @pytest.fixture
    def env_typed(self):
        return Environment(keep_output_type=True)

    def test_lone_value_keeps_type(self, env_typed):
        assert render(env_typed, "{{ 42 }}") == 42
        assert render(env_typed, "{{ items }}", {"items": [1, 2]}) == [1, 2]

    def test_multiple_chunks_become_text(self, env_typed):
        assert render(env_typed, "a{{ 1 }}") == "a1"
        assert render(env_typed, "{{ 1 }}{{ 2 }}") == "12"


class TestOverrides:
    def test_per_call_options_do_not_persist(self, env):
        with pytest.raises(UndefinedVariableError):
            render(env, "{{ x }}", strict_variables=True)
        assert env.options.strict_variables is False
        assert render(env, "{{ x }}") == ""

    def test_clear_cache_without_cache(self, env):
        env.clear_template_cache()

    def test_repr(self):
        env = Environment(templates={})
        assert repr(env).startswith("<Environment loader=DictLoader")


class TestTemplate:
    def test_dict_and_keywords(self, env):
        template = env.from_string("{{ a }}{{ b }}")
        assert template.render({"a": 1}, b=2) == "12"
        assert template.render(a="x") == "x"

    def test_rejects_non_dict_positional(self, env):
        template = env.from_string("x")
        with pytest.raises(TypeError):
            template.render("data")
        with pytest.raises(TypeError):
            template.render({}, {})

    def test_name_and_repr(self, env_with_templates):
        template = env_with_templates.get_template("card")
        assert isinstance(template, Template)
        assert template.name == "card"
        assert template.env is env_with_templates
        assert repr(template) == "<Template card nodes=3>"

    def test_environment_is_weakly_referenced(self):
        template = Environment().from_string("static")
        gc.collect()
        with pytest.raises(RuntimeError, match="garbage collected"):
            template.render()


class TestLRUCache:
    def test_evicts_least_recently_used(self):
        cache = LRUCache(2)
        cache.write("a", 1)
        cache.write("b", 2)
        assert cache.read("a") == 1
        cache.write("c", 3)
        assert cache.read("b") is None
        assert "a" in cache
        assert "c" in cache
        assert len(cache) == 2

    def test_overwrite_keeps_size(self):
        cache = LRUCache(2)
        cache.write("a", 1)
        cache.write("a", 2)
        assert cache.read("a") == 2
        assert cache.size == 1

    def test_remove_and_clear(self):
        cache = LRUCache(4)
        cache.write("a", 1)
        cache.write("b", 2)
        cache.remove("a")
        assert "a" not in cache
        cache.clear()
        assert len(cache) == 0


class TestLoaders:
    def test_dict_loader_resolve(self):
        loader = DictLoader({})
        assert loader.resolve(".", "a/b", ".liquid") == "a/b.liquid"
        assert loader.resolve("", "x.html", ".liquid") == "x.html"
        assert loader.resolve("dir", "../x", "") == "x"
        assert loader.resolve("dir/sub", "./y", "") == "dir/sub/y"

    def test_dict_loader_access(self):
        loader = DictLoader({"a/b": "AB"})
        assert loader.exists("a/b")
        assert not loader.exists("a/c")
        assert loader.read_file("a/b") == "AB"
        assert loader.dirname("a/b") == "a"
        with pytest.raises(FileNotFoundError):
            loader.read_file("a/c")

    def test_file_system_loader_contains(self, tmp_path):
        from sluice import FileSystemLoader

        loader = FileSystemLoader()
        root = str(tmp_path / "views")
        assert loader.contains(root, loader.resolve(root, "a/b", ".liquid"))
        assert not loader.contains(root, loader.resolve(root, "../secret", ""))
