"""
Login Form Discovery
====================
Heuristic field / submit discovery over page snapshots.

Each strategy looks at a snapshot taken by ``scripts.INPUT_SNAPSHOT`` or
``scripts.CONTROL_SNAPSHOT`` and returns either a match or ``None``
("no opinion").  Strategies are evaluated in priority order; the first
match wins.

Field strategies:
    1. ``HintedFieldStrategy``     — text-like / identity-hinted input + password input
    2. ``PositionalFieldStrategy`` — first two visible inputs (username, password)

Submit strategies:
    1. ``LexiconSubmitStrategy``   — visible control labelled like "login"
    2. ``FormSubmitStrategy``      — submit control inside the password's form
    3. ``FirstVisibleSubmitStrategy`` — any visible control
    4. ``ProgrammaticSubmitStrategy`` — ``form.submit()``
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

# Selector for clickable controls on the login page
CONTROL_SELECTOR = 'button, input[type="submit"], input[type="button"], a'

_TEXT_TYPES = ("text", "email", "tel", "")


# ---------------------------------------------------------------------------
# Snapshot types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InputField:
    index: int
    type: str = "text"
    name: str = ""
    id: str = ""
    placeholder: str = ""
    visible: bool = False

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "InputField":
        return cls(
            index=int(raw.get("index", 0)),
            type=str(raw.get("type") or "").lower(),
            name=str(raw.get("name") or ""),
            id=str(raw.get("id") or ""),
            placeholder=str(raw.get("placeholder") or ""),
            visible=bool(raw.get("visible")),
        )

    @property
    def is_password(self) -> bool:
        return self.type == "password"


@dataclass(frozen=True)
class FieldPair:
    username: InputField
    password: InputField
    strategy: str


@dataclass(frozen=True)
class Control:
    index: int
    tag: str = ""
    type: str = ""
    text: str = ""
    value: str = ""
    title: str = ""
    visible: bool = False
    in_form: bool = False

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "Control":
        return cls(
            index=int(raw.get("index", 0)),
            tag=str(raw.get("tag") or "").lower(),
            type=str(raw.get("type") or "").lower(),
            text=str(raw.get("text") or ""),
            value=str(raw.get("value") or ""),
            title=str(raw.get("title") or ""),
            visible=bool(raw.get("visible")),
            in_form=bool(raw.get("inForm")),
        )

    @property
    def label(self) -> str:
        return (self.text or self.value).strip()

    @property
    def is_submit(self) -> bool:
        return self.tag in ("button", "input") and self.type == "submit"


@dataclass(frozen=True)
class ControlSnapshot:
    controls: List[Control]
    has_form: bool = False

    @classmethod
    def from_raw(cls, raw: Optional[Dict[str, Any]]) -> "ControlSnapshot":
        raw = raw or {}
        return cls(
            controls=[Control.from_raw(c) for c in raw.get("controls") or []],
            has_form=bool(raw.get("hasForm")),
        )


@dataclass(frozen=True)
class Submission:
    """How to submit: click the control at ``index``, or ``form.submit()``."""
    mode: str                # "click" | "form"
    strategy: str
    index: int = -1


def parse_inputs(raw: Optional[Iterable[Dict[str, Any]]]) -> List[InputField]:
    return [InputField.from_raw(r) for r in raw or []]


def input_diagnostics(fields: Sequence[InputField]) -> Dict[str, int]:
    """Counts reported with ``LoginFormNotFound`` for triage."""
    visible = [f for f in fields if f.visible]
    return {
        "total_inputs": len(fields),
        "visible_inputs": len(visible),
        "text_inputs": sum(1 for f in visible if f.type in _TEXT_TYPES),
        "password_inputs": sum(1 for f in visible if f.is_password),
    }


def control_diagnostics(snapshot: ControlSnapshot) -> Dict[str, Any]:
    return {
        "total_controls": len(snapshot.controls),
        "visible_controls": sum(1 for c in snapshot.controls if c.visible),
        "has_form": snapshot.has_form,
    }


# ---------------------------------------------------------------------------
# Field strategies
# ---------------------------------------------------------------------------

class FieldStrategy(ABC):
    name: str = ""

    @abstractmethod
    def match(self, fields: Sequence[InputField]) -> Optional[FieldPair]:
        ...


class HintedFieldStrategy(FieldStrategy):
    """Visible username-like input paired with a visible password input."""

    name = "hinted"

    def __init__(self, hints: Iterable[str] = ("user", "id", "login")):
        self.hints = [h.lower() for h in hints]

    def _is_username_like(self, field: InputField) -> bool:
        if field.is_password:
            return False
        if field.type in _TEXT_TYPES:
            return True
        haystack = f"{field.name} {field.id}".lower()
        return any(h in haystack for h in self.hints)

    def match(self, fields: Sequence[InputField]) -> Optional[FieldPair]:
        visible = [f for f in fields if f.visible]
        usernames = [f for f in visible if self._is_username_like(f)]
        passwords = [f for f in visible if f.is_password]
        if not usernames or not passwords:
            return None
        return FieldPair(usernames[0], passwords[0], self.name)


class PositionalFieldStrategy(FieldStrategy):
    """First two visible inputs, in document order."""

    name = "positional"

    def match(self, fields: Sequence[InputField]) -> Optional[FieldPair]:
        visible = [f for f in fields if f.visible]
        if len(visible) < 2:
            return None
        return FieldPair(visible[0], visible[1], self.name)


def default_field_strategies(hints: Iterable[str]) -> List[FieldStrategy]:
    return [HintedFieldStrategy(hints), PositionalFieldStrategy()]


def discover_fields(
    fields: Sequence[InputField], strategies: Sequence[FieldStrategy]
) -> Optional[FieldPair]:
    for strategy in strategies:
        pair = strategy.match(fields)
        if pair is not None:
            logger.debug(
                f"[AUTH] Fields via '{strategy.name}': "
                f"user=#{pair.username.index} password=#{pair.password.index}"
            )
            return pair
    return None


# ---------------------------------------------------------------------------
# Submit strategies
# ---------------------------------------------------------------------------

class SubmitStrategy(ABC):
    name: str = ""

    @abstractmethod
    def match(self, snapshot: ControlSnapshot) -> Optional[Submission]:
        ...


class LexiconSubmitStrategy(SubmitStrategy):
    name = "lexicon"

    def __init__(self, lexicon: Iterable[str] = ("login",)):
        self.lexicon = [w.lower() for w in lexicon]

    def match(self, snapshot: ControlSnapshot) -> Optional[Submission]:
        for control in snapshot.controls:
            if not control.visible:
                continue
            label = control.label.lower()
            if label and any(w in label for w in self.lexicon):
                return Submission("click", self.name, control.index)
        return None


class FormSubmitStrategy(SubmitStrategy):
    """Submit control of the form enclosing the password input."""

    name = "form_control"

    def match(self, snapshot: ControlSnapshot) -> Optional[Submission]:
        in_form = [c for c in snapshot.controls if c.in_form]
        for control in in_form:
            if control.is_submit:
                return Submission("click", self.name, control.index)
        for control in in_form:
            if control.tag == "button":
                return Submission("click", self.name, control.index)
        return None


class FirstVisibleSubmitStrategy(SubmitStrategy):
    name = "first_visible"

    def match(self, snapshot: ControlSnapshot) -> Optional[Submission]:
        for control in snapshot.controls:
            if control.visible:
                return Submission("click", self.name, control.index)
        return None


class ProgrammaticSubmitStrategy(SubmitStrategy):
    name = "form_submit"

    def match(self, snapshot: ControlSnapshot) -> Optional[Submission]:
        if snapshot.has_form:
            return Submission("form", self.name)
        return None


def default_submit_strategies(lexicon: Iterable[str]) -> List[SubmitStrategy]:
    return [
        LexiconSubmitStrategy(lexicon),
        FormSubmitStrategy(),
        FirstVisibleSubmitStrategy(),
        ProgrammaticSubmitStrategy(),
    ]


def discover_submission(
    snapshot: ControlSnapshot, strategies: Sequence[SubmitStrategy]
) -> Optional[Submission]:
    for strategy in strategies:
        submission = strategy.match(snapshot)
        if submission is not None:
            logger.debug(f"[AUTH] Submit via '{strategy.name}' (index={submission.index})")
            return submission
    return None
