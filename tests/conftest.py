"""Pytest configuration and fixtures for sluice tests."""

import pytest

from sluice import Environment


@pytest.fixture
def env():
    """Create a basic sluice Environment."""
    return Environment()


@pytest.fixture
def env_strict():
    """Create an Environment that rejects undefined variables and filters."""
    return Environment(strict_variables=True, strict_filters=True)


@pytest.fixture
def env_escape():
    """Create an Environment that HTML-escapes every output."""
    return Environment(output_escape="escape")


@pytest.fixture
def env_with_templates():
    """Create an Environment backed by an in-memory set of templates."""
    return Environment(
        templates={
            "base": (
                "<html>"
                "<head>{% block head %}<title>{{ title }}</title>{% endblock %}</head>"
                "<body>{% block body %}default body{% endblock %}</body>"
                "</html>"
            ),
            "child": '{% layout "base" %}{% block body %}Hello {{ name }}{% endblock %}',
            "partial": "<p>{{ name }}</p>",
            "card": "<b>{{ title }}</b>",
            "product": "{{ product.title }}:{{ forloop.index }};",
            "dir/a": "{% include './b' %}",
            "dir/b": "B={{ name }}",
            "counter": "{% increment n %}",
        }
    )


@pytest.fixture
def env_fs(tmp_path):
    """Create an Environment whose templates live in a temporary directory."""
    views = tmp_path / "views"
    (views / "shared").mkdir(parents=True)
    (views / "index.liquid").write_text("Index {% include 'shared/header' %}")
    (views / "shared" / "header.liquid").write_text("<h1>{{ title }}</h1>")
    (views / "shared" / "nav.liquid").write_text("{% render './header', title: 'nav' %}")
    return Environment(root=str(views), extname=".liquid")


class Shout:
    """Plain object exposed to templates."""

    def __init__(self, word):
        self.word = word

    def loud(self):
        return self.word.upper()


def render(env: Environment, source: str, data=None, **overrides):
    """Parse and render ``source`` synchronously."""
    return env.parse_and_render(source, data or {}, **overrides)


def assert_contains(result: str, *expected_parts: str) -> None:
    """Assert rendered output contains all expected parts.

    Args:
        result: The actual rendered output.
        expected_parts: Strings that should all be present in the result.
    """
    for part in expected_parts:
        assert part in result, (
            f"Template output missing expected content:\n"
            f"  Missing: {part!r}\n"
            f"  Actual: {result!r}"
        )
