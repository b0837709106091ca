"""Matching input addressed directly to the bot by name or alias."""

import re

from ponder.config.settings import Settings


def direct_pattern(name: str | None, alias: str | None = None) -> re.Pattern[str]:
    """Expression matching the bot's name or alias at the start of input.

    Allows leading whitespace, an ``@`` mention and a trailing ``:`` or ``,``.
    The longer of name and alias is tried first. A name ending in a word
    character must end a word, so ``bot`` does not address ``bother``.
    """
    names = sorted((n for n in (name, alias) if n), key=len, reverse=True)
    options = "|".join(_name_option(n) for n in names)
    return re.compile(rf"^\s*@?(?:{options})\s*", re.IGNORECASE)


def _name_option(name: str) -> str:
    boundary = r"\b" if re.match(r"\w", name[-1]) else ""
    return f"{re.escape(name)}{boundary}[:,]?"


def direct_pattern_for(settings: Settings) -> re.Pattern[str]:
    """Expression for the bot name and alias currently configured."""
    return direct_pattern(settings.get("name"), settings.get("alias"))


def strip_direct(text: str, settings: Settings) -> str | None:
    """Return text without the bot name prefix, or None if not addressed."""
    pattern = direct_pattern_for(settings)
    if not pattern.match(text):
        return None
    return pattern.sub("", text, count=1)
