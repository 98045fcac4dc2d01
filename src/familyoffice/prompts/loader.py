"""Prompt template discovery and `${name}` substitution."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from familyoffice.errors import TemplateNotFoundError

TEMPLATE_SUFFIX = ".md"
PLACEHOLDER_PATTERN = re.compile(r"\$\{([A-Za-z0-9_]+)\}")
TEMPLATE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class PromptTemplate:
    """Loaded template text and its distinct placeholder names in first-seen order."""

    name: str
    content: str
    variables: tuple[str, ...]


def extract_variables(content: str) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_PATTERN.finditer(content):
        seen.setdefault(match.group(1), None)
    return tuple(seen)


def fill_template(template: str, values: Mapping[str, str]) -> str:
    """Replace every `${key}` for the supplied keys in a single pass.

    Substituted values are never rescanned, and placeholders without a value
    are left verbatim.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            return match.group(0)
        return str(values[name])

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def _builtin_templates_root() -> Path:
    return Path(__file__).parent / "templates"


class PromptLoader:
    """Load templates from an optional override directory, then the built-in set."""

    def __init__(self, override_dir: Path | None = None) -> None:
        self._roots: list[Path] = []
        if override_dir is not None:
            self._roots.append(override_dir.expanduser())
        self._roots.append(_builtin_templates_root())

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    def load(self, name: str) -> PromptTemplate:
        if not TEMPLATE_NAME_PATTERN.match(name):
            raise TemplateNotFoundError(name, "invalid template name")

        for root in self._roots:
            path = root / f"{name}{TEMPLATE_SUFFIX}"
            if not path.is_file():
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise TemplateNotFoundError(name, str(exc)) from exc
            logger.debug("prompt.load name={} path={}", name, path)
            return PromptTemplate(name=name, content=content, variables=extract_variables(content))

        searched = ", ".join(str(root) for root in self._roots)
        raise TemplateNotFoundError(name, f"not found in {searched}")

    def available(self) -> list[str]:
        names: set[str] = set()
        for root in self._roots:
            if not root.is_dir():
                continue
            names.update(path.stem for path in root.glob(f"*{TEMPLATE_SUFFIX}"))
        return sorted(names)
