import pytest

from lumenpress.errors import MalformedContent
from lumenpress.utils.front_matter import (
    MalformedFrontMatter,
    parse_front_matter,
    parse_yaml_document,
    render_front_matter,
)


def test_parses_fenced_block():
    fm = parse_front_matter("---\ntitle: Hello\ntags: [a, b]\n---\nBody text\n")
    assert fm.present
    assert fm.data == {"title": "Hello", "tags": ["a", "b"]}
    assert fm.body == "Body text\n"


def test_document_without_front_matter():
    fm = parse_front_matter("Just a body\n")
    assert not fm.present
    assert fm.data == {}
    assert fm.body == "Just a body\n"


def test_byte_order_mark_is_ignored():
    fm = parse_front_matter("\ufeff---\ntitle: Hello\n---\nBody")
    assert fm.data["title"] == "Hello"


def test_unclosed_block_is_malformed():
    with pytest.raises(MalformedFrontMatter) as exc_info:
        parse_front_matter("---\ntitle: x\nno closing fence", path="blog/a.md")
    assert exc_info.value.path == "blog/a.md"
    assert "no closing fence" in exc_info.value.body


def test_invalid_yaml_keeps_body():
    with pytest.raises(MalformedFrontMatter) as exc_info:
        parse_front_matter("---\ntitle: [unclosed\n---\nBody")
    assert exc_info.value.body == "Body"


def test_non_mapping_is_malformed():
    with pytest.raises(MalformedFrontMatter):
        parse_front_matter("---\n- a\n- b\n---\nBody")


def test_render_then_parse_keeps_fields():
    text = render_front_matter({"title": "A", "tags": ["x"], "cover": None}, "Body")
    fm = parse_front_matter(text)
    assert fm.data == {"title": "A", "tags": ["x"]}
    assert fm.body.strip() == "Body"


def test_render_without_data_is_plain_body():
    assert render_front_matter({"cover": None}, "Body\n") == "Body\n"


def test_yaml_document_errors_are_malformed_content():
    assert parse_yaml_document("title: x") == {"title": "x"}
    with pytest.raises(MalformedContent):
        parse_yaml_document("title: [broken", path="galleries/a/gallery.yaml")
