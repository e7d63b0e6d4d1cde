import abc


class HtmlToTextConverter(abc.ABC):
    name: str = "converter"

    @abc.abstractmethod
    async def convert(self, html: str | bytes) -> str:
        """
        Render an HTML document or fragment as plain text
        """

    @abc.abstractmethod
    async def is_available(self) -> bool:
        """
        Whether the backend can be used right now
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


def decode_html(html: str | bytes) -> str:
    if isinstance(html, bytes):
        return html.decode("utf-8", errors="replace")
    return html
