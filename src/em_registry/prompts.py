"""
em_registry.prompts — Interactive questionnaire with re-prompting.

Input functions are injectable so commands can be driven from tests.
"""

from __future__ import annotations

import getpass
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from em_registry.exceptions import RegistryCliError
from em_registry.validation import Validator

InputFn = Callable[[str], str]


@dataclass(frozen=True)
class Question:
    name: str
    message: str
    validate: Validator | None = None
    default: str | None = None
    secret: bool = False


def _prompt_text(question: Question) -> str:
    if question.default and not question.secret:
        return f"{question.message} [{question.default}]: "
    return f"{question.message}: "


def ask(
    question: Question,
    *,
    input_fn: InputFn = input,
    secret_fn: InputFn = getpass.getpass,
) -> str:
    """Ask until the answer validates. An empty answer takes the default."""
    reader = secret_fn if question.secret else input_fn
    while True:
        try:
            raw = reader(_prompt_text(question))
        except EOFError as exc:
            raise RegistryCliError(f"No value provided for {question.name}") from exc

        value = raw.strip()
        if not value and question.default is not None:
            value = question.default

        error = question.validate(value) if question.validate else None
        if error is None:
            return value
        print(f">> {error}")


def ask_all(
    questions: Iterable[Question],
    *,
    input_fn: InputFn = input,
    secret_fn: InputFn = getpass.getpass,
) -> dict[str, str]:
    return {q.name: ask(q, input_fn=input_fn, secret_fn=secret_fn) for q in questions}
