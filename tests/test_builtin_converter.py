import pytest

from notmuch_mail.render.builtin import BuiltinConverter, HtmlTextTokenizer, decode_entities, reflow, wrap_line


def render(html, width=80, preserve_links=False):
    return BuiltinConverter(width=width, preserve_links=preserve_links).render(html)


def test_heading_and_paragraph():
    assert render("<h1>Hi</h1><p>There<br>friend</p>") == "Hi\n\nThere\nfriend"


def test_tags_are_case_insensitive():
    assert render("<H1>Hi</H1><P>There<BR>friend</P>") == "Hi\n\nThere\nfriend"


def test_handles_plain_text_input():
    text = "This is just plain text with no HTML tags."
    assert render(text) == text


def test_empty_input():
    assert render("") == ""
    assert render(None) == ""
    assert render("   ") == ""


def test_bytes_input():
    assert render("<p>Grüße</p>".encode()) == "Grüße"


def test_removes_style_blocks():
    html = "<style>body { color: red; }</style><p>Visible content</p>"
    result = render(html)
    assert "color: red" not in result
    assert result == "Visible content"


def test_removes_script_tags():
    html = "<script>if (a<b) { alert('xss') }</script><p>Safe content</p>"
    result = render(html)
    assert "alert" not in result
    assert result == "Safe content"


def test_removes_head_and_comments():
    html = "<html><head><title>T</title></head><body><!-- hidden <b>x</b> --><p>Body</p></body></html>"
    assert render(html) == "Body"


def test_collapses_whitespace():
    assert render("<p>a  \t b\r\n  c</p>") == "a b\nc"


def test_collapses_blank_lines():
    assert render("<p>a</p><br><br><br><br><p>b</p>") == "a\n\nb"


def test_table_cells_are_tab_separated():
    assert render("<table><tr><td>a</td><td>b</td></tr><tr><th>c</th><td>d</td></tr></table>") == "a\tb\n\tc\td"


def test_list_items():
    assert render("<ul><li>one</li><li>two</li></ul>") == "one\ntwo"


def test_unknown_tags_produce_nothing():
    assert render("<span>a</span><b>b</b><div>c</div>") == "abc"


def test_wraps_at_width():
    assert render("<p>aaa bbb ccc ddd</p>", width=7) == "aaa bbb\nccc ddd"


def test_long_word_is_not_split():
    assert render("<p>a verylongword b</p>", width=5) == "a\nverylongword\nb"


def test_entities():
    assert render("Fish &amp; chips &quot;to go&quot; &#39;now&#39;") == "Fish & chips \"to go\" 'now'"


def test_numeric_entities():
    assert decode_entities("&#233;&#xE9;&#X263A;") == "éé☺"


def test_named_entities():
    html = "<p>Caf&eacute; &mdash; it&rsquo;s &copy; 2024&hellip; &frac12; &euro;5 &Ouml;l</p>"
    assert render(html) == "Café — it’s © 2024… ½ €5 Öl"


def test_nbsp_becomes_space():
    assert decode_entities("a&nbsp;b") == "a b"


def test_unknown_entity_passes_through():
    assert render("caf&eacute; &bogus; &notanentity;") == "café &bogus; &notanentity;"


def test_invalid_numeric_entity_passes_through():
    assert decode_entities("&#0; &#x110000;") == "&#0; &#x110000;"


def test_unterminated_tag_consumes_rest():
    assert render("<p>visible</p><a href='x") == "visible"


def test_stray_closing_bracket_is_dropped():
    assert render("a > b") == "a b"


def test_links_dropped_by_default():
    assert render('<p>Click <a href="https://example.com">here</a></p>') == "Click here"


def test_preserve_links():
    html = '<p>Click <a href="https://example.com">here</a> or <a href="https://x.org">https://x.org</a></p>'
    assert render(html, preserve_links=True) == "Click here (https://example.com) or https://x.org"


@pytest.mark.parametrize(
    "html",
    [
        "<h1>Hi</h1><p>There<br>friend</p>",
        "plain text",
        "<div <span>>nested</span>",
        "a > b >> c",
        "<<<>>>",
        "<p>unterminated <b",
        "text</p>more<br/>",
        "<!-- comment > with bracket -->after",
        "<script>x > 1 && y < 2</script>done",
    ],
)
def test_output_never_contains_angle_brackets(html):
    """Markup brackets never survive; escaped ones (&lt; &gt;) decode to text, see below"""
    result = render(html)
    assert "<" not in result
    assert ">" not in result


def test_text_without_tags_is_only_collapsed_and_wrapped():
    text = "one  two\tthree\n\nfour five six seven"
    assert render(text, width=10) == "one two\nthree\n\nfour five\nsix seven"


def test_streaming_matches_single_feed():
    html = "<h2>Title</h2><p>Some <b>bold</b> text<br/>and a <a href='u'>link</a>.</p><script>var a = '<p>';</script>"
    whole = HtmlTextTokenizer()
    whole.feed(html)
    chunked = HtmlTextTokenizer()
    for char in html:
        chunked.feed(char)
    assert whole.close() == chunked.close()


def test_wrap_line_helpers():
    assert wrap_line("", 10) == [""]
    assert wrap_line("a b c", 3) == ["a b", "c"]
    assert reflow("  padded  \n\n\n\nnext", 80) == "padded\n\nnext"


@pytest.mark.asyncio
async def test_async_interface():
    converter = BuiltinConverter()
    assert converter.name == "builtin"
    assert await converter.is_available()
    assert await converter.convert("<p>x</p>") == "x"


@pytest.mark.parametrize(
    "html, expected",
    [
        ("<p>a &lt;b&gt; c</p>", "a <b> c"),
    ],
)
def test_escaped_angle_brackets_are_decoded(html, expected):
    assert render(html) == expected
