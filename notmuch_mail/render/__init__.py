import asyncio

from notmuch_mail.config import ConverterType, TextRendererConfig
from notmuch_mail.exceptions import ConfigurationError, ConverterUnavailable
from notmuch_mail.log import logger
from notmuch_mail.render.base import HtmlToTextConverter
from notmuch_mail.render.builtin import BuiltinConverter
from notmuch_mail.render.external import ExternalConverter

POPULAR_TOOLS = {
    "lynx": "lynx -dump -stdin",
    "w3m": "w3m -dump -T text/html",
    "html2text": "html2text",
    "pandoc": "pandoc -f html -t plain",
}

__all__ = [
    "BuiltinConverter",
    "ConverterType",
    "ExternalConverter",
    "HtmlToTextConverter",
    "TextRendererConfig",
    "create_converter",
    "detect_available_tools",
    "popular_external_tools",
]


def popular_external_tools() -> dict[str, str]:
    """Well-known converters and the command line that reads HTML on stdin"""
    return dict(POPULAR_TOOLS)


async def detect_available_tools() -> dict[str, str]:
    """The subset of ``popular_external_tools`` installed on this machine"""
    converters = {name: ExternalConverter(command) for name, command in POPULAR_TOOLS.items()}
    results = await asyncio.gather(*(c.is_available() for c in converters.values()))
    return {name: POPULAR_TOOLS[name] for name, ok in zip(converters, results) if ok}


async def _external(config: TextRendererConfig) -> ExternalConverter:
    if not config.external_command:
        raise ConfigurationError("External converter selected but no command configured")
    converter = ExternalConverter(config.external_command, width=config.text_width)
    if not await converter.is_available():
        raise ConverterUnavailable(f"Converter command is not usable: {config.external_command}")
    return converter


async def create_converter(config: TextRendererConfig | None = None) -> HtmlToTextConverter:
    """Resolve the configured backend.

    ``builtin`` always succeeds, ``external`` fails when the command cannot
    be probed, and ``auto`` tries the external command when one is set and
    otherwise (or on failure) uses the builtin converter.
    """
    if config is None:
        config = TextRendererConfig()
    builtin = BuiltinConverter(width=config.text_width, preserve_links=config.preserve_links)

    if config.converter_type == ConverterType.BUILTIN:
        return builtin
    if config.converter_type == ConverterType.EXTERNAL:
        return await _external(config)

    if config.external_command:
        try:
            return await _external(config)
        except ConfigurationError as e:
            logger.info(f"Falling back to builtin HTML converter: {e!s}")
    return builtin
