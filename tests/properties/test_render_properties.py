import pytest
from hypothesis import given, strategies as st
from markupsafe import Markup, escape

from stache import FunctionRegistrationError, FunctionRegistry, TemplateEngine, TemplateSyntaxError
from stache._logging import null_logger

ENGINE = TemplateEngine(logger=null_logger())

identifier = st.from_regex(r"[A-Za-z_][A-Za-z0-9_]{0,12}", fullmatch=True)

# Template text that cannot open a tag
plain_text = st.text(alphabet=st.characters(blacklist_characters="{"), max_size=50)

section_values = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(),
    st.text(max_size=5),
    st.lists(st.integers(), max_size=4),
    st.dictionaries(identifier, st.integers(), max_size=3),
)


@given(text=plain_text)
def test_text_without_tags_renders_unchanged(text: str) -> None:
    assert ENGINE.render(text, {}) == text


@given(value=st.text())
def test_double_braces_escape_html(value: str) -> None:
    result = ENGINE.render("{{v}}", {"v": value})
    assert result == str(escape(value))
    assert "<" not in result
    assert ">" not in result


@given(value=st.text())
def test_double_braces_escape_markup_values(value: str) -> None:
    assert ENGINE.render("{{v}}", {"v": Markup(value)}) == str(escape(value))


@given(value=st.text())
def test_triple_braces_emit_raw_text(value: str) -> None:
    assert ENGINE.render("{{{v}}}", {"v": value}) == value


@given(name=identifier)
def test_absent_variables_render_empty(name: str) -> None:
    assert ENGINE.render(f"[{{{{{name}}}}}]", {}) == "[]"


@given(items=st.lists(st.text(alphabet="abcxyz019 ", max_size=6), max_size=10))
def test_loops_preserve_count_and_order(items: list[str]) -> None:
    result = ENGINE.render("{{#xs}}<{{.}}>{{/xs}}", {"xs": items})
    assert result == "".join(f"<{item}>" for item in items)


@given(value=section_values)
def test_section_and_inverted_section_are_exclusive(value: object) -> None:
    result = ENGINE.render("{{#v}}A{{/v}}{{^v}}B{{/v}}", {"v": value})
    assert result == "B" or (result and set(result) == {"A"})


@given(prefix=plain_text, middle=plain_text)
def test_mismatched_close_reports_close_tag_position(prefix: str, middle: str) -> None:
    template = f"{prefix}{{{{#a}}}}{middle}{{{{/b}}}}"
    with pytest.raises(TemplateSyntaxError, match="Section mismatch") as exc_info:
        _ = ENGINE.compile(template)
    error = exc_info.value
    assert error.position == len(prefix) + len("{{#a}}") + len(middle)
    assert error.line == template.count("\n", 0, error.position) + 1


@given(name=identifier)
def test_duplicate_registration_is_rejected(name: str) -> None:
    registry = FunctionRegistry()
    registry.register(name, str)

    with pytest.raises(FunctionRegistrationError):
        registry.register(name, repr)
    with pytest.raises(FunctionRegistrationError):
        registry.register_async(name, repr)

    assert registry.call(name, [1]) == "1"
    assert len(registry) == 1
