"""Shared hypothesis strategies for sluice property-based testing.

Provides reusable strategies that generate structurally valid template
inputs at three abstraction levels:

- **Lexer**: Template fragments with valid delimiter patterns
- **Values**: Plain data the renderer should print faithfully
- **Loops**: Collections and modifiers for ``{% for %}``

These are building blocks -- individual test modules compose them into
property-specific strategies.
"""

from __future__ import annotations

from hypothesis import strategies as st

# ---------------------------------------------------------------------------
# Lexer strategies
# ---------------------------------------------------------------------------

# Plain text that does NOT contain delimiter characters
# Used to test the HTML-token roundtrip invariant.
plain_text = st.text(
    alphabet=st.characters(
        blacklist_categories=("Cs",),  # no surrogates
        blacklist_characters="{}%\x00",
    ),
    min_size=1,
    max_size=200,
)

identifier = st.from_regex(r"[a-z_][a-z0-9_]{0,12}", fullmatch=True).filter(
    lambda name: name
    not in {"true", "false", "nil", "null", "empty", "blank", "and", "or", "not", "contains"}
)

# Valid outputs: {{ identifier }}
liquid_variable = identifier.map(lambda name: f"{{{{ {name} }}}}")

# Valid inline comments: {% # text %}
_comment_body = st.from_regex(r"[a-zA-Z0-9_ ]{0,30}", fullmatch=True)
liquid_comment = _comment_body.map(lambda body: f"{{% # {body} %}}")

# Template fragments: plain text interleaved with outputs and comments
template_fragment = st.lists(
    st.one_of(plain_text, liquid_variable, liquid_comment),
    min_size=1,
    max_size=5,
).map("".join)

# Arbitrary text that might stress the lexer (fuzz-like)
arbitrary_template_source = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",)),
    min_size=0,
    max_size=300,
)

# ---------------------------------------------------------------------------
# Value strategies
# ---------------------------------------------------------------------------

safe_int = st.integers(min_value=-(10**9), max_value=10**9)

# Strings that print verbatim (no delimiters, no escaping concerns)
printable_string = st.text(
    alphabet=st.characters(
        whitelist_categories=("Lu", "Ll", "Nd", "Zs"),
    ),
    max_size=40,
)

# ---------------------------------------------------------------------------
# Loop strategies
# ---------------------------------------------------------------------------

int_lists = st.lists(safe_int, max_size=20)
loop_bound = st.integers(min_value=0, max_value=25)
