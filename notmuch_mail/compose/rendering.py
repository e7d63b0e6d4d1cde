import markdown

# tables, footnotes, ~~strikethrough~~ and - [ ] task lists, as on GitHub
MARKDOWN_EXTENSIONS = [
    "tables",
    "footnotes",
    "fenced_code",
    "sane_lists",
    "pymdownx.tilde",
    "pymdownx.tasklist",
]


def markdown_to_html(text: str) -> str:
    """Render a markdown body to an HTML fragment"""
    return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS, output_format="html")
