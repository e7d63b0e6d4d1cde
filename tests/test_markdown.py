from notmuch_mail.compose.rendering import markdown_to_html


class TestMarkdownToHtml:
    def test_bold(self):
        assert markdown_to_html("**bold**") == "<p><strong>bold</strong></p>"

    def test_tables(self):
        html = markdown_to_html("| a | b |\n|---|---|\n| 1 | 2 |\n")
        assert "<table>" in html
        assert "<td>1</td>" in html

    def test_strikethrough(self):
        assert "<del>gone</del>" in markdown_to_html("~~gone~~")

    def test_task_list(self):
        html = markdown_to_html("- [x] done\n- [ ] todo\n")
        assert html.count('type="checkbox"') == 2

    def test_footnotes(self):
        html = markdown_to_html("Claim[^1]\n\n[^1]: Source\n")
        assert 'class="footnote"' in html

    def test_fenced_code(self):
        html = markdown_to_html("```\nprint('hi')\n```\n")
        assert "<pre><code>" in html
