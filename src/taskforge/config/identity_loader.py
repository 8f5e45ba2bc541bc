"""Parse the ``Intent.md`` identity document.

The document is plain markdown with level-two sections (Mission, Vision,
Values, Principles, Owner Context, Departments) and labeled bullets of the form
``- **Key**: value``. Unknown sections are ignored; missing ones produce
warnings rather than errors.
"""

import re
from pathlib import Path

from pydantic import BaseModel, Field

from taskforge.config.cache import MtimeCache
from taskforge.config.defaults import DEFAULT_INTENT
from taskforge.config.loader import ConfigLoadError
from taskforge.telemetry import get_logger

log = get_logger(__name__)

_SECTION_RE = re.compile(r"^##\s+(.+?)\s*$", re.MULTILINE)
_DEPARTMENT_RE = re.compile(r"^###\s+(.+?)\s*$", re.MULTILINE)
_LABELED_BULLET_RE = re.compile(r"^-+\s+(?:\*\*)?([^:*]+?)(?:\*\*)?:\s*(.+)$")
_DEFAULT_MODEL_RE = re.compile(r"^(.+?)\s*\((.+?)\)$")
_METHODOLOGY_SPLIT_RE = re.compile(r"\s*(?:->|→)\s*")


class IdentityLoadError(ConfigLoadError):
    """Raised when Intent.md cannot be read."""

    pass


class Owner(BaseModel):
    """The human the orchestrator works for."""

    name: str = ""
    role: str = ""
    technical_depth: str = ""
    projects: list[str] = Field(default_factory=list)
    communication_style: str = ""
    decision_framework: str = ""


class Department(BaseModel):
    """One department (sub-agent persona) of the identity document.

    Attributes:
        focus: What the department works on.
        default_models: Purpose label (e.g. ``complex``) to human model name.
        review_standard: Review expectations, if stated.
        output_standard: Output expectations, if stated.
        safety_standard: Safety expectations, if stated.
        automation_level: How much runs without approval, if stated.
        methodology: Ordered working steps.
    """

    focus: str = ""
    default_models: dict[str, str] = Field(default_factory=dict)
    review_standard: str = ""
    output_standard: str = ""
    safety_standard: str = ""
    automation_level: str = ""
    methodology: list[str] = Field(default_factory=list)


class Identity(BaseModel):
    """Parsed identity document."""

    mission: str = ""
    vision: str = ""
    values: list[str] = Field(default_factory=list)
    principles: list[str] = Field(default_factory=list)
    owner: Owner = Field(default_factory=Owner)
    departments: dict[str, Department] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    def department(self, name: str) -> Department | None:
        """Look up a department by normalized name."""
        return self.departments.get(name)


def _clean_inline(value: str) -> str:
    return value.replace("**", "").replace("`", "").strip()


def _normalize_key(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", _clean_inline(value).lower()).strip("_")


def _sections(contents: str) -> dict[str, str]:
    matches = list(_SECTION_RE.finditer(contents))
    sections: dict[str, str] = {}
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(contents)
        sections[match.group(1).strip()] = contents[match.end() : end].strip()
    return sections


def _bullet_lines(section: str) -> list[str]:
    return [line.strip() for line in section.splitlines() if line.strip().startswith("- ")]


def _labeled_bullets(section: str) -> dict[str, str]:
    entries: dict[str, str] = {}
    for line in _bullet_lines(section):
        match = _LABELED_BULLET_RE.match(line)
        if match:
            entries[_normalize_key(match.group(1))] = _clean_inline(match.group(2))
    return entries


def _list_section(section: str) -> list[str]:
    items = []
    for line in _bullet_lines(section):
        text = re.sub(r"^-+\s+", "", line)
        text = re.sub(r"^[^:]+:\s*", "", text)
        items.append(_clean_inline(text))
    return items


def parse_default_models(value: str) -> dict[str, str]:
    """Parse ``"Claude Code (complex), Ollama (simple)"`` into a purpose map.

    Entries without a parenthesized purpose are keyed by their own name.
    """
    models: dict[str, str] = {}
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        match = _DEFAULT_MODEL_RE.match(part)
        if match:
            models[_normalize_key(match.group(2))] = _clean_inline(match.group(1))
        else:
            models[_normalize_key(part)] = _clean_inline(part)
    return models


def _parse_departments(section: str) -> dict[str, Department]:
    matches = list(_DEPARTMENT_RE.finditer(section))
    departments: dict[str, Department] = {}
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(section)
        values = _labeled_bullets(section[match.end() : end])
        methodology = [
            _clean_inline(item)
            for item in _METHODOLOGY_SPLIT_RE.split(values.get("methodology", ""))
            if _clean_inline(item)
        ]
        departments[_normalize_key(match.group(1))] = Department(
            focus=values.get("focus", ""),
            default_models=parse_default_models(values.get("default_models", "")),
            review_standard=values.get("review_standard", ""),
            output_standard=values.get("output_standard", ""),
            safety_standard=values.get("safety_standard", ""),
            automation_level=values.get("automation_level", ""),
            methodology=methodology,
        )
    return departments


def _parse_owner(section: str) -> Owner:
    values = _labeled_bullets(section)
    projects = [item.strip() for item in values.get("projects", "").split(",") if item.strip()]
    return Owner(
        name=values.get("name", ""),
        role=values.get("role", ""),
        technical_depth=values.get("technical_depth", ""),
        projects=projects,
        communication_style=values.get("communication_style", ""),
        decision_framework=values.get("decision_framework", ""),
    )


def parse_intent(contents: str) -> Identity:
    """Parse the markdown identity document.

    Args:
        contents: Raw Intent.md text.

    Returns:
        Parsed Identity; structural gaps are reported in ``warnings``.
    """
    sections = _sections(contents)
    warnings = []
    mission = sections.get("Mission")
    departments = sections.get("Departments (Sub-Agent Architecture)") or sections.get(
        "Departments"
    )
    if not mission:
        warnings.append("Missing Mission section in Intent.md")
    if not departments:
        warnings.append("Missing Departments section in Intent.md")

    return Identity(
        mission=" ".join((mission or "").split()),
        vision=" ".join(sections.get("Vision", "").split()),
        values=_list_section(sections.get("Values", "")),
        principles=_list_section(sections.get("Principles", "")),
        owner=_parse_owner(sections.get("Owner Context", "")),
        departments=_parse_departments(departments or ""),
        warnings=warnings,
    )


def _read_identity(path: Path) -> Identity:
    try:
        contents = path.read_text(encoding="utf-8")
    except OSError as e:
        raise IdentityLoadError(f"Failed to read identity document {path}: {e}") from None
    identity = parse_intent(contents)
    for warning in identity.warnings:
        log.warning("identity_document_incomplete", path=str(path), warning=warning)
    return identity


def default_identity() -> Identity:
    """Identity parsed from the built-in Intent.md seed."""
    return parse_intent(DEFAULT_INTENT)


def load_identity(path: Path, cache: MtimeCache | None = None) -> Identity:
    """Load Intent.md, falling back to the built-in identity when it is absent.

    Args:
        path: Location of Intent.md.
        cache: Optional mtime cache shared with other loaders.

    Returns:
        Parsed Identity.

    Raises:
        IdentityLoadError: If the file exists but cannot be read.
    """
    if not path.exists():
        log.debug("identity_document_missing", path=str(path))
        return default_identity()
    if cache is None:
        return _read_identity(path)
    return cache.get_or_load(path, _read_identity)
