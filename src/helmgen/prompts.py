# ABOUTME: Prompter implementations used by the deployment intent collector
# ABOUTME: Interactive questionary prompts and scripted answers from a mapping or YAML file

"""
Prompters: the only place the collector touches a user.

Question steps never call questionary directly. They call a Prompter, which
is either:

- QuestionaryPrompter: interactive terminal prompts
- ScriptedPrompter: answers looked up by field name from a mapping, e.g. a
  YAML answers file, the previous run's stored answers, or a test fixture

Every method takes the DeploymentAnswers field name first so scripted
answers can be looked up without parsing question text.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import questionary
import structlog
import yaml
from questionary import Style
from rich.console import Console

from helmgen.errors import CollectionAborted, ConfigurationError

if TYPE_CHECKING:
    from pathlib import Path

logger = structlog.get_logger(__name__)

# Returns True when valid, or an error message to show the user
Validator = Callable[[Any], "bool | str"]

PROMPT_STYLE = Style([
    ("qmark", "fg:cyan bold"),
    ("question", "bold"),
    ("answer", "fg:green"),
    ("pointer", "fg:cyan bold"),
    ("highlighted", "fg:cyan"),
    ("selected", "fg:green"),
])

TRUE_STRINGS = frozenset(["y", "yes", "true", "1", "on"])
FALSE_STRINGS = frozenset(["n", "no", "false", "0", "off"])


@dataclass(frozen=True)
class Choice:
    title: str
    value: str


class Prompter(Protocol):
    async def select(
        self, name: str, message: str, choices: Sequence[Choice], default: str | None = None
    ) -> str: ...

    async def checkbox(
        self,
        name: str,
        message: str,
        choices: Sequence[Choice],
        default: Sequence[str] = (),
        validate: Validator | None = None,
    ) -> list[str]: ...

    async def text(
        self, name: str, message: str, default: str = "", validate: Validator | None = None
    ) -> str: ...

    async def password(
        self, name: str, message: str, default: str = "", validate: Validator | None = None
    ) -> str: ...

    async def confirm(self, name: str, message: str, default: bool = False) -> bool: ...

    def notify(self, message: str) -> None: ...


# =============================================================================
# INTERACTIVE
# =============================================================================


class QuestionaryPrompter:
    """Terminal prompts. A cancelled question (Ctrl+C) raises CollectionAborted."""

    def __init__(self, console: Console | None = None, style: Style = PROMPT_STYLE) -> None:
        self._console = console or Console()
        self._style = style

    async def _ask(self, name: str, question: questionary.Question) -> Any:
        answer = await question.ask_async()
        if answer is None:
            raise CollectionAborted("Question cancelled", details=name)
        return answer

    async def select(
        self, name: str, message: str, choices: Sequence[Choice], default: str | None = None
    ) -> str:
        return await self._ask(
            name,
            questionary.select(
                message,
                choices=[questionary.Choice(c.title, value=c.value) for c in choices],
                default=default,
                style=self._style,
            ),
        )

    async def checkbox(
        self,
        name: str,
        message: str,
        choices: Sequence[Choice],
        default: Sequence[str] = (),
        validate: Validator | None = None,
    ) -> list[str]:
        return await self._ask(
            name,
            questionary.checkbox(
                message,
                choices=[
                    questionary.Choice(c.title, value=c.value, checked=c.value in default)
                    for c in choices
                ],
                validate=validate or (lambda _: True),
                style=self._style,
            ),
        )

    async def text(
        self, name: str, message: str, default: str = "", validate: Validator | None = None
    ) -> str:
        return await self._ask(
            name,
            questionary.text(
                message, default=default, validate=validate or (lambda _: True), style=self._style
            ),
        )

    async def password(
        self, name: str, message: str, default: str = "", validate: Validator | None = None
    ) -> str:
        return await self._ask(
            name,
            questionary.password(
                message, default=default, validate=validate or (lambda _: True), style=self._style
            ),
        )

    async def confirm(self, name: str, message: str, default: bool = False) -> bool:
        return await self._ask(
            name, questionary.confirm(message, default=default, style=self._style)
        )

    def notify(self, message: str) -> None:
        self._console.print(message)


# =============================================================================
# SCRIPTED
# =============================================================================


class ScriptedPrompter:
    """
    Answers questions from a mapping keyed by answer field name.

    With use_defaults=True, a question without a scripted answer takes the
    default it offers (which already reflects the stored configuration). With
    use_defaults=False, a missing answer is a ConfigurationError.

    Validators run on scripted answers exactly as they do interactively.
    """

    def __init__(self, answers: Mapping[str, Any], use_defaults: bool = True) -> None:
        self._answers = dict(answers)
        self._use_defaults = use_defaults
        self.notifications: list[str] = []

    def _lookup(self, name: str, default: Any) -> Any:
        if name in self._answers:
            return self._answers[name]
        if self._use_defaults:
            return default
        raise ConfigurationError(f"No answer supplied for '{name}'")

    @staticmethod
    def _check(name: str, value: Any, validate: Validator | None) -> None:
        if validate is None:
            return
        result = validate(value)
        if result is not True:
            raise ConfigurationError(f"Answer for '{name}' rejected", details=str(result))

    @staticmethod
    def _check_choice(name: str, value: Any, choices: Sequence[Choice]) -> str:
        allowed = [c.value for c in choices]
        if value not in allowed:
            raise ConfigurationError(
                f"Answer for '{name}' rejected", details=f"'{value}' is not one of {allowed}"
            )
        return value

    async def select(
        self, name: str, message: str, choices: Sequence[Choice], default: str | None = None
    ) -> str:
        return self._check_choice(name, self._lookup(name, default), choices)

    async def checkbox(
        self,
        name: str,
        message: str,
        choices: Sequence[Choice],
        default: Sequence[str] = (),
        validate: Validator | None = None,
    ) -> list[str]:
        value = self._lookup(name, list(default))
        if isinstance(value, str):
            value = [value]
        selected = [self._check_choice(name, v, choices) for v in value or []]
        self._check(name, selected, validate)
        return selected

    async def text(
        self, name: str, message: str, default: str = "", validate: Validator | None = None
    ) -> str:
        value = self._lookup(name, default)
        value = "" if value is None else str(value)
        self._check(name, value, validate)
        return value

    async def password(
        self, name: str, message: str, default: str = "", validate: Validator | None = None
    ) -> str:
        return await self.text(name, message, default, validate)

    async def confirm(self, name: str, message: str, default: bool = False) -> bool:
        value = self._lookup(name, default)
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
        raise ConfigurationError(f"Answer for '{name}' rejected", details=f"'{value}' is not yes/no")

    def notify(self, message: str) -> None:
        self.notifications.append(message)
        logger.info("collector notice", message=message)


def load_answers_file(path: Path) -> dict[str, Any]:
    """
    Read a YAML answers file.

    Example:
        deployment_application_type: microservice
        directory_path: ../
        apps_folders: [gateway, store, invoice]
        namespace: shop
        service_type: Ingress
        ingress_domain: shop.example.com

    Raises:
        ConfigurationError: Missing file, bad YAML, or not a mapping.
    """
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigurationError("Cannot read answers file", path, str(e)) from e
    except yaml.YAMLError as e:
        raise ConfigurationError("Answers file is not valid YAML", path, str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("Answers file must contain a mapping", path)
    return data
