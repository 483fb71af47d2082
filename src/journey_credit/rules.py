"""Condition parsing for custom attribution rules.

A condition has the form ``<field> <op> <literal>``, for example::

    channel == paid-search
    channel in display,video
    value >= 100
    touch == first
    metadata.campaign != spring-sale

``index`` is the touchpoint's 0-based chronological position and ``touch``
is one of ``first``, ``last``, ``middle`` or ``only``. ``value`` and
``index`` compare numerically, including the members of an ``in`` list.

A touchpoint without the field (no ``source``, no ``value``, a missing
metadata key) only matches ``!=``.
"""

from __future__ import annotations

import operator
import re
from collections import abc
from dataclasses import dataclass
from typing import Any

from .data import Touchpoint

__all__ = ["Condition", "ConditionSyntaxError", "parse_condition"]

_PATTERN = re.compile(
    r"^\s*(?P<field>[A-Za-z_][\w.-]*)\s*(?P<op>==|!=|>=|<=|>|<|\bin\b)\s*(?P<literal>.+?)\s*$"
)
_FIELDS = frozenset({"channel", "source", "value", "index", "touch"})
_NUMERIC_FIELDS = frozenset({"value", "index"})
_ORDERING_OPS: dict[str, abc.Callable[[Any, Any], bool]] = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
}
_TOUCH_LABELS = frozenset({"first", "last", "middle", "only"})


class ConditionSyntaxError(ValueError):
    """Raised when a rule condition cannot be parsed."""


@dataclass(frozen=True, slots=True)
class Condition:
    field: str
    op: str
    literal: str | float | frozenset[str] | frozenset[float]

    def matches(self, touchpoint: Touchpoint, index: int, length: int) -> bool:
        actual = self._resolve(touchpoint, index, length)
        if actual is None:
            return self.op == "!="
        if self.op == "in":
            if self.field in _NUMERIC_FIELDS:
                number = _as_number(actual)
                return number is not None and number in self.literal  # type: ignore[operator]
            return str(actual) in self.literal  # type: ignore[operator]
        if self.op in _ORDERING_OPS:
            number = _as_number(actual)
            if number is None:
                return False
            return _ORDERING_OPS[self.op](number, self.literal)
        equal = self._equals(actual)
        return equal if self.op == "==" else not equal

    def _equals(self, actual: Any) -> bool:
        if isinstance(self.literal, float):
            return _as_number(actual) == self.literal
        return str(actual) == self.literal

    def _resolve(self, touchpoint: Touchpoint, index: int, length: int) -> Any:
        if self.field == "channel":
            return touchpoint.channel.value
        if self.field == "source":
            return touchpoint.source
        if self.field == "value":
            return touchpoint.value
        if self.field == "index":
            return index
        if self.field == "touch":
            return _touch_label(index, length)
        return touchpoint.metadata.get(self.field.removeprefix("metadata."))


def _as_number(actual: Any) -> float | None:
    try:
        return float(actual)
    except (TypeError, ValueError):
        return None


def _touch_label(index: int, length: int) -> str:
    if length == 1:
        return "only"
    if index == 0:
        return "first"
    if index == length - 1:
        return "last"
    return "middle"


def parse_condition(text: str) -> Condition:
    """Parse ``text`` into a :class:`Condition`.

    Raises
    ------
    ConditionSyntaxError
        If the field, operator or literal is not understood.
    """
    match = _PATTERN.match(text or "")
    if match is None:
        msg = f"Expected '<field> <op> <value>', got {text!r}."
        raise ConditionSyntaxError(msg)

    field_name = match["field"]
    op = match["op"]
    raw_literal = match["literal"]

    if field_name not in _FIELDS and not field_name.startswith("metadata."):
        msg = f"Unknown condition field {field_name!r}."
        raise ConditionSyntaxError(msg)
    if field_name == "metadata.":
        msg = "A metadata condition needs a key, e.g. 'metadata.campaign'."
        raise ConditionSyntaxError(msg)

    if op == "in":
        members = frozenset(part.strip() for part in raw_literal.split(",") if part.strip())
        if not members:
            msg = f"Condition {text!r} lists no values."
            raise ConditionSyntaxError(msg)
        if field_name in _NUMERIC_FIELDS:
            try:
                return Condition(field=field_name, op=op, literal=frozenset(map(float, members)))
            except ValueError as exc:
                msg = f"Condition {text!r} needs numeric values."
                raise ConditionSyntaxError(msg) from exc
        return Condition(field=field_name, op=op, literal=members)

    if op in _ORDERING_OPS or field_name in _NUMERIC_FIELDS:
        try:
            number = float(raw_literal)
        except ValueError as exc:
            msg = f"Condition {text!r} needs a numeric value."
            raise ConditionSyntaxError(msg) from exc
        return Condition(field=field_name, op=op, literal=number)

    if field_name == "touch" and raw_literal not in _TOUCH_LABELS:
        labels = ", ".join(sorted(_TOUCH_LABELS))
        msg = f"'touch' must be one of {labels}."
        raise ConditionSyntaxError(msg)

    return Condition(field=field_name, op=op, literal=raw_literal)
