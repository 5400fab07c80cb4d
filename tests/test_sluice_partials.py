"""Tests for include, render, layout/block and partial resolution."""

from __future__ import annotations

import pytest

from sluice import (
    DictLoader,
    Environment,
    ParseError,
    RenderError,
    TemplateNotFoundError,
    TemplateSyntaxError,
)
from sluice.environment.resolver import LookupType

from .conftest import assert_contains, render


class CountingLoader(DictLoader):
    """DictLoader that records every file it reads."""

    def __init__(self, mapping):
        super().__init__(mapping)
        self.reads = []

    def read_file(self, path):
        self.reads.append(path)
        return super().read_file(path)


class TestInclude:
    """{% include %} renders in the caller's scope."""

    def test_include(self, env_with_templates):
        source = "{% include 'partial' %}"
        assert render(env_with_templates, source, {"name": "Ada"}) == "<p>Ada</p>"

    def test_arguments(self, env_with_templates):
        assert render(env_with_templates, "{% include 'card', title: 'Hi' %}") == "<b>Hi</b>"

    def test_sees_caller_variables(self, env_with_templates):
        source = "{% assign title = 'outer' %}{% include 'card' %}"
        assert render(env_with_templates, source) == "<b>outer</b>"

    def test_with_value_binds_file_name(self, env_with_templates):
        source = "{% include 'product' with p %}"
        assert render(env_with_templates, source, {"p": {"title": "Mug"}}) == "Mug:;"

    def test_shares_counters(self, env_with_templates):
        assert render(env_with_templates, "{% include 'counter' %}{% include 'counter' %}") == "01"

    def test_arguments_do_not_leak(self, env_with_templates):
        source = "{% include 'card', title: 'Hi' %}[{{ title }}]"
        assert render(env_with_templates, source) == "<b>Hi</b>[]"

    def test_variable_name(self, env_with_templates):
        assert render(env_with_templates, "{% include tpl %}", {"tpl": "card", "title": "T"}) == (
            "<b>T</b>"
        )

    def test_interpolated_name(self, env_with_templates):
        source = "{% include 'dir/{{ which }}' %}"
        assert render(env_with_templates, source, {"which": "b", "name": "x"}) == "B=x"

    def test_illegal_name(self, env_with_templates):
        with pytest.raises(RenderError, match="illegal file path"):
            render(env_with_templates, "{% include missing_var %}")

    def test_not_found(self, env_with_templates):
        with pytest.raises(RenderError) as exc_info:
            render(env_with_templates, "{% include 'missing' %}")
        error = exc_info.value
        assert isinstance(error.original_error, TemplateNotFoundError)
        assert 'Failed to lookup "missing" in "."' in str(error)

    def test_relative_reference(self, env_with_templates):
        assert env_with_templates.render_file("dir/a", {"name": "Z"}) == "B=Z"

    def test_jekyll_include(self):
        env = Environment(
            templates={"hello.html": "Hi {{ include.name }}{{ name }}"},
            jekyll_include=True,
        )
        assert render(env, "{% include hello.html name='Ada' %}") == "Hi Ada"


class TestRender:
    """{% render %} renders in an isolated scope."""

    def test_arguments(self, env_with_templates):
        assert render(env_with_templates, "{% render 'card', title: 'Hi' %}") == "<b>Hi</b>"

    def test_isolated_from_caller(self, env_with_templates):
        source = "{% assign title = 'outer' %}{% render 'card' %}"
        assert render(env_with_templates, source, {"title": "input"}) == "<b></b>"

    def test_globals_visible(self):
        env = Environment(templates={"card": "<b>{{ title }}</b>"}, globals={"title": "G"})
        assert render(env, "{% render 'card' %}") == "<b>G</b>"

    def test_fresh_counters(self, env_with_templates):
        assert render(env_with_templates, "{% render 'counter' %}{% render 'counter' %}") == "00"

    def test_with_alias(self, env_with_templates):
        source = "{% render 'card' with item as title %}"
        assert render(env_with_templates, source, {"item": "X"}) == "<b>X</b>"

    def test_with_defaults_to_file_name(self, env_with_templates):
        source = "{% render 'product' with p %}"
        assert render(env_with_templates, source, {"p": {"title": "Mug"}}) == "Mug:;"

    def test_for_collection(self, env_with_templates):
        data = {"products": [{"title": "A"}, {"title": "B"}]}
        source = "{% render 'product' for products as product %}"
        assert render(env_with_templates, source, data) == "A:1;B:2;"
        assert render(env_with_templates, "{% render 'product' for products %}", data) == (
            "A:1;B:2;"
        )

    def test_relative_reference(self, env_fs):
        assert env_fs.render_file("shared/nav") == "<h1>nav</h1>"


class TestLayout:
    """{% layout %} and {% block %} inheritance."""

    @pytest.fixture
    def env_layouts(self):
        return Environment(
            templates={
                "base": "<main>{% block body %}default body{% endblock %}</main>",
                "mid": '{% layout "base" %}{% block body %}mid[{{ block.super }}]{% endblock %}',
                "leaf": '{% layout "mid" %}{% block body %}leaf[{{ block.super }}]{% endblock %}',
                "frame": "<main>{% block %}{% endblock %}</main>",
            }
        )

    def test_child_overrides_block(self, env_with_templates):
        output = env_with_templates.render_file("child", {"name": "Ada", "title": "T"})
        assert output == "<html><head><title>T</title></head><body>Hello Ada</body></html>"

    def test_block_super(self, env_layouts):
        source = '{% layout "base" %}{% block body %}[{{ block.super }}]{% endblock %}'
        assert render(env_layouts, source) == "<main>[default body]</main>"

    def test_multi_level(self, env_layouts):
        assert env_layouts.render_file("leaf") == "<main>leaf[mid[default body]]</main>"

    def test_anonymous_block_receives_body(self, env_layouts):
        output = render(env_layouts, '{% layout "frame" %}content here')
        assert output == "<main>content here</main>"

    def test_layout_arguments(self, env_with_templates):
        source = '{% layout "base" title: "From child" %}'
        output = render(env_with_templates, source)
        assert_contains(output, "<title>From child</title>", "default body")

    def test_layout_none(self, env_layouts):
        source = "{% layout none %}x{% block body %}y{% endblock %}"
        assert render(env_layouts, source) == "xy"

    def test_block_without_layout_renders_inline(self, env):
        assert render(env, "a{% block b %}B{% endblock %}c") == "aBc"

    def test_unclosed_block(self, env):
        with pytest.raises(ParseError):
            env.parse("{% block body %}never closed")

    def test_missing_layout(self, env_with_templates):
        with pytest.raises(RenderError) as exc_info:
            render(env_with_templates, '{% layout "nope" %}x')
        assert isinstance(exc_info.value.original_error, TemplateNotFoundError)


class TestCache:
    """Parsed partials are cached per lookup key."""

    def test_parses_once(self):
        loader = CountingLoader({"partial": "p"})
        env = Environment(loader=loader, root=".", cache=True)
        assert render(env, "{% include 'partial' %}{% include 'partial' %}") == "pp"
        assert render(env, "{% include 'partial' %}") == "p"
        assert loader.reads == ["partial"]

    def test_without_cache_reads_every_time(self):
        loader = CountingLoader({"partial": "p"})
        env = Environment(loader=loader, root=".")
        render(env, "{% include 'partial' %}{% include 'partial' %}")
        assert loader.reads == ["partial", "partial"]

    def test_clear_template_cache(self):
        loader = CountingLoader({"partial": "p"})
        env = Environment(loader=loader, root=".", cache=True)
        render(env, "{% include 'partial' %}")
        env.clear_template_cache()
        loader.mapping["partial"] = "q"
        assert render(env, "{% include 'partial' %}") == "q"

    def test_failed_parse_is_not_cached(self):
        loader = CountingLoader({"bad": "{% nope %}"})
        env = Environment(loader=loader, root=".", cache=True)
        with pytest.raises(ParseError):
            render(env, "{% include 'bad' %}")
        loader.mapping["bad"] = "fixed"
        assert render(env, "{% include 'bad' %}") == "fixed"

    def test_cache_capacity(self):
        env = Environment(templates={"a": "A"}, cache=2)
        assert env.options.cache.limit == 2


class TestFileSystem:
    """FileSystemLoader with search roots and an extension."""

    def test_render_file(self, env_fs):
        assert env_fs.render_file("index", {"title": "T"}) == "Index <h1>T</h1>"

    def test_explicit_extension(self, env_fs):
        source = "{% include 'shared/header.liquid' %}"
        assert render(env_fs, source, {"title": "x"}) == "<h1>x</h1>"

    def test_parse_error_reports_file(self, env_fs, tmp_path):
        (tmp_path / "views" / "broken.liquid").write_text("ok\n{% if %}")
        with pytest.raises(TemplateSyntaxError) as exc_info:
            env_fs.parse_file("broken")
        assert exc_info.value.file.endswith("broken.liquid")
        assert exc_info.value.line == 2

    def test_partials_cannot_escape_root(self, env_fs, tmp_path):
        (tmp_path / "secret.liquid").write_text("secret")
        with pytest.raises(RenderError) as exc_info:
            render(env_fs, "{% include '../secret' %}")
        assert isinstance(exc_info.value.original_error, TemplateNotFoundError)

    def test_multiple_roots(self, tmp_path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        first.mkdir()
        second.mkdir()
        (second / "only.liquid").write_text("from second")
        env = Environment(root=[str(first), str(second)], extname=".liquid")
        assert env.render_file("only") == "from second"

    def test_layout_lookup_type(self, env_fs):
        output = env_fs.render_file("shared/header", {"title": "L"}, LookupType.LAYOUTS)
        assert output == "<h1>L</h1>"

    def test_get_template(self, env_fs):
        template = env_fs.get_template("index")
        assert template.name == "index"
        assert template.render(title="T") == "Index <h1>T</h1>"
