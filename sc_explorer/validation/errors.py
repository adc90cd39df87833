from __future__ import annotations

from dataclasses import dataclass

from sc_explorer.core.exceptions import ScExplorerError


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str


class ValidationError(ScExplorerError):
    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("\n".join(f"{i.code}: {i.message}" for i in issues))

    @property
    def codes(self) -> list[str]:
        return [i.code for i in self.issues]


class PanelConfigError(ValidationError):
    """A panel's parameters are invalid in isolation; the panel is not added."""
    pass
