"""Control identifier normalization.

Parses the textual spellings of a control identifier into one canonical
``ControlIdentifier`` and renders it back out. Grammars are tried in table
order and the first full match wins:

    dotted          AC.2.1
    hyphen-paren    AC-2(1)
    hyphen          AC-2
    space           AC 2, AC 2(1), AC 2 (1)
    no-separator    AC2
    oscal           ac-2.1   (catalog/profile ids)

All sorting and deduplication of identifiers must go through ``compare`` or
``ControlIdentifier.sort_key``; raw text ordering puts AC-10 before AC-9.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, NamedTuple, Optional, Union

from ..errors import MalformedIdentifier
from ..models.control import ControlIdentifier


class IdentifierForm(str, Enum):
    DOTTED = "dotted"
    HYPHENATED = "hyphenated"


class Grammar(NamedTuple):
    name: str
    pattern: re.Pattern
    form: IdentifierForm


_FAMILY = r"(?P<family>[A-Z]{2})"
_NUMBER = r"(?P<number>[0-9]+)"
_ENH = r"(?P<enhancement>[0-9]+)"

GRAMMARS: tuple[Grammar, ...] = (
    Grammar("dotted", re.compile(rf"{_FAMILY}\.{_NUMBER}(?:\.{_ENH})?"), IdentifierForm.DOTTED),
    Grammar("hyphen-paren", re.compile(rf"{_FAMILY}-{_NUMBER}\({_ENH}\)"), IdentifierForm.HYPHENATED),
    Grammar("hyphen", re.compile(rf"{_FAMILY}-{_NUMBER}"), IdentifierForm.HYPHENATED),
    Grammar("space", re.compile(rf"{_FAMILY}\s+{_NUMBER}(?:\s*\({_ENH}\))?"), IdentifierForm.HYPHENATED),
    Grammar("no-separator", re.compile(rf"{_FAMILY}{_NUMBER}"), IdentifierForm.HYPHENATED),
    Grammar("oscal", re.compile(rf"{_FAMILY}-{_NUMBER}\.{_ENH}"), IdentifierForm.HYPHENATED),
)


def match_grammar(text: str) -> tuple[Grammar, re.Match]:
    """Return the first grammar that fully matches ``text`` and its match."""
    if not isinstance(text, str) or not text.strip():
        raise MalformedIdentifier(text)

    candidate = text.strip().upper()
    for grammar in GRAMMARS:
        m = grammar.pattern.fullmatch(candidate)
        if m:
            return grammar, m
    raise MalformedIdentifier(text)


def _to_int(digits: Optional[str], text: str) -> Optional[int]:
    if digits is None:
        return None
    try:
        return int(digits.lstrip("0") or "0", 10)
    except ValueError:
        # digit strings past the interpreter's int conversion limit
        raise MalformedIdentifier(text) from None


def parse(text: str) -> ControlIdentifier:
    """Parse any supported spelling into a canonical identifier."""
    _, m = match_grammar(text)
    groups = m.groupdict()
    number = _to_int(groups["number"], text)
    if number <= 0:
        raise MalformedIdentifier(text)
    return ControlIdentifier(
        family=groups["family"],
        number=number,
        enhancement=_to_int(groups.get("enhancement"), text),
    )


def coerce(value: Union[str, ControlIdentifier]) -> ControlIdentifier:
    if isinstance(value, ControlIdentifier):
        return value
    return parse(value)


def render(control_id: ControlIdentifier, form: Union[IdentifierForm, str] = IdentifierForm.HYPHENATED) -> str:
    form = IdentifierForm(form)
    if form is IdentifierForm.DOTTED:
        return control_id.dotted
    return control_id.hyphenated


def canonicalize(text: str, form: Optional[Union[IdentifierForm, str]] = None) -> str:
    """Re-render ``text`` canonically, in the form it was written in unless ``form`` is given."""
    grammar, _ = match_grammar(text)
    return render(parse(text), form or grammar.form)


def compare(a: ControlIdentifier, b: ControlIdentifier) -> int:
    ka, kb = a.sort_key(), b.sort_key()
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def sort_identifiers(ids: Iterable[Union[str, ControlIdentifier]]) -> list[ControlIdentifier]:
    """Parse, deduplicate by canonical equality and sort."""
    unique = {coerce(i) for i in ids}
    return sorted(unique, key=ControlIdentifier.sort_key)


def get_family(value: Union[str, ControlIdentifier]) -> str:
    return coerce(value).family


def has_enhancement(value: Union[str, ControlIdentifier]) -> bool:
    return coerce(value).enhancement is not None


def base_control(value: Union[str, ControlIdentifier]) -> ControlIdentifier:
    control_id = coerce(value)
    return ControlIdentifier(family=control_id.family, number=control_id.number)
