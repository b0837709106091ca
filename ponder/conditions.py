"""Semantic text conditions converted to regular expressions.

A condition maps keys to one or more values, e.g.
``{"starts": "order", "after": "for"}``. Keys:

- ``is``       match the whole input
- ``starts``   match the beginning or first word
- ``ends``     match the end or last word
- ``contains`` match part of the input or a word
- ``excludes`` negative match of part or word
- ``after``    capture anything after the value
- ``before``   capture anything before the value
- ``range``    capture a number in a range, e.g. ``"1-10"`` (0-999 only)

Multiple keys in one condition combine into one expression, capturing only
for the last key. Strings in the form ``"/pattern/flags"`` and compiled
expressions are used as given.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ponder.exceptions import ConditionError
from ponder.observability.logging import get_logger

logger = get_logger(__name__)

CONDITION_KEYS = frozenset(
    {"is", "starts", "ends", "contains", "excludes", "after", "before", "range"}
)

REGEX_STRING = re.compile(r"^/(.+)/(\w*)$", re.DOTALL)
REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE, "u": 0, "g": 0}
CAPTURE_GROUP = re.compile(r"(?<!\\)\((?!\?)")
GROUP = re.compile(r"(\(.+?\))")
TRIM = re.compile(r"^[,\-:\s]*|[,\-:\s]*$")
RANGE_LIMIT = 999

Condition = Mapping[str, str | Sequence[str]]
ConditionInput = str | re.Pattern[str] | Condition | Sequence[Any] | Mapping[str, Condition]


@dataclass
class ConditionOptions:
    """How condition values are converted to expressions."""

    match_word: bool = True
    ignore_case: bool = True
    ignore_punctuation: bool = False


def is_condition(value: Any) -> bool:
    return isinstance(value, Mapping) and bool(value) and all(
        key in CONDITION_KEYS for key in value
    )


def is_collection(value: Any) -> bool:
    return isinstance(value, Mapping) and bool(value) and all(
        is_condition(item) for item in value.values()
    )


def from_string(value: str) -> re.Pattern[str]:
    """Convert a ``"/pattern/flags"`` string to an expression."""
    match = REGEX_STRING.match(value)
    if not match:
        raise ConditionError(f"{value} can not convert to expression")
    flags = 0
    for flag in match.group(2):
        if flag not in REGEX_FLAGS:
            raise ConditionError(f"{value} has unknown expression flag {flag}")
        flags |= REGEX_FLAGS[flag]
    try:
        return re.compile(match.group(1), flags)
    except re.error as err:
        raise ConditionError(f"{value} can not convert to expression: {err}") from err


def range_pattern(value: str) -> str:
    """Alternation matching any whole number in an inclusive ``lo-hi`` range."""
    try:
        low, high = (int(part) for part in value.split("-", 1))
    except ValueError as err:
        raise ConditionError(f"Invalid range {value!r}, expected e.g. '1-10'") from err
    low, high = sorted((low, high))
    if low < 0 or high > RANGE_LIMIT:
        raise ConditionError(f"Range {value!r} must be within 0-{RANGE_LIMIT}")
    numbers = sorted(range(low, high + 1), key=lambda n: (-len(str(n)), n))
    return "|".join(str(n) for n in numbers)


def _prepare_value(key: str, value: str, options: ConditionOptions) -> str:
    if key != "range":
        try:
            re.compile(value)
        except re.error:
            value = re.escape(value)
    if options.ignore_punctuation:
        value = re.sub(r"([^\\\w\s])", r"\1+", value)
    return value


def from_condition(
    condition: Condition, options: ConditionOptions | None = None
) -> re.Pattern[str]:
    """Convert a semantic condition to an expression."""
    options = options or ConditionOptions()
    b = r"\b" if options.match_word else ""
    p = r"\,\-\:\[\]\/\(\)\+\?\.\'\$" if options.ignore_punctuation else r"\,\-\:"
    flags = re.IGNORECASE if options.ignore_case else 0

    patterns: list[str] = []
    for key, values in condition.items():
        if values is None:
            raise ConditionError(f"Undefined values for condition key {key}")
        if isinstance(values, str):
            values = [values]
        v = "|".join(_prepare_value(key, value, options) for value in values)
        if key == "is":
            patterns.append(f"^({v})$")
        elif key == "starts":
            patterns.append(f"^({v}){b}")
        elif key == "ends":
            patterns.append(f"{b}({v})$")
        elif key == "contains":
            patterns.append(f"{b}({v}){b}")
        elif key == "excludes":
            patterns.append(f"^((?!{b}(?:{v}){b}).)*$")
        elif key == "after":
            patterns.append(rf"(?:{v}\s?)([\w\-\s{p}]+)")
        elif key == "before":
            patterns.append(rf"([\w\-\s{p}]+)(?:\s?{v})")
        elif key == "range":
            patterns.append(f"{b}({range_pattern(v)}){b}")
        else:
            raise ConditionError(f"Unknown condition key {key}")

    if not patterns:
        return re.compile(r".*", flags)

    for i in range(len(patterns) - 1):
        # Drop a group repeated at the start of the next pattern, e.g. the
        # capture of "before" followed by "after" on the same value.
        groups = GROUP.findall(patterns[i])
        if len(groups) > 1 and patterns[i + 1].startswith(groups[1]):
            patterns[i] = patterns[i].replace(groups[1], "", 1)
        patterns[i] = CAPTURE_GROUP.sub("(?:", patterns[i])

    return re.compile(r"\s?".join(patterns), flags)


@dataclass
class ConditionResult:
    """Outcome of evaluating conditions against a string."""

    matches: dict[str | int, re.Match[str] | None] = field(default_factory=dict)
    captures: dict[str | int, str | None] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """Whether every expression matched."""
        return bool(self.matches) and all(m is not None for m in self.matches.values())

    @property
    def _single(self) -> bool:
        return len(self.matches) == 1 and all(isinstance(k, int) for k in self.matches)

    @property
    def match(self) -> re.Match[str] | bool | None:
        """The only match object, or overall success when multiple."""
        if len(self.matches) > 1:
            return self.success
        return next(iter(self.matches.values()), None)

    @property
    def matched(self) -> Any:
        """The only match object, or all matches when multiple or named."""
        if self._single:
            return next(iter(self.matches.values()))
        return self.matches or None

    @property
    def captured(self) -> Any:
        """The only capture, or all captures when multiple or named."""
        if self._single:
            return next(iter(self.captures.values()))
        return self.captures or None

    def __bool__(self) -> bool:
        return self.success


class Conditions:
    """A collection of expressions evaluated together against text.

    Evaluating returns a new result and leaves the collection unchanged, so
    one instance can be shared by branches matching concurrent messages.
    """

    def __init__(
        self,
        condition: ConditionInput | None = None,
        options: ConditionOptions | None = None,
        **option_overrides: bool,
    ) -> None:
        self.options = options or ConditionOptions(**option_overrides)
        self.expressions: dict[str | int, re.Pattern[str]] = {}
        if condition is None:
            return
        if isinstance(condition, (str, re.Pattern)) or is_condition(condition):
            self.add(condition)
        elif is_collection(condition):
            for key, item in condition.items():
                self.add(item, key)
        elif isinstance(condition, Sequence) and not isinstance(condition, Mapping):
            for item in condition:
                self.add(item)
        else:
            raise ConditionError(f"Invalid condition input: {condition!r}")

    def add(self, condition: Any, key: str | int | None = None) -> "Conditions":
        """Convert and add an expression, keyed by index if no key given."""
        if key is None:
            key = len(self.expressions)
        try:
            if isinstance(condition, re.Pattern):
                expression = condition
            elif isinstance(condition, str):
                expression = from_string(condition)
            elif is_condition(condition):
                expression = from_condition(condition, self.options)
            else:
                raise ConditionError(f"Invalid condition: {condition!r}")
        except ConditionError as err:
            logger.error("condition_invalid", key=key, error=err.message)
            raise
        self.expressions[key] = expression
        return self

    def exec(self, text: str) -> ConditionResult:
        """Evaluate every expression against text."""
        result = ConditionResult()
        for key, expression in self.expressions.items():
            match = expression.search(text)
            result.matches[key] = match
            capture = next(
                (group for group in (match.groups() if match else ()) if isinstance(group, str)),
                None,
            )
            result.captures[key] = TRIM.sub("", capture).strip() if capture is not None else None
        return result

    def clear(self) -> None:
        """Remove all expressions."""
        self.expressions.clear()
