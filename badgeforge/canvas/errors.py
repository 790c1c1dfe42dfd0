from __future__ import annotations

from typing import Iterable


class TemplateValidationError(ValueError):
    """Raised when a stored template document cannot be loaded or saved.

    ``violations`` lists every problem found, not only the first one.
    """

    def __init__(self, violations: Iterable[str]) -> None:
        self.violations = list(violations)
        super().__init__("; ".join(self.violations) or "invalid template")


class DuplicateTemplateName(ValueError):
    def __init__(self, name: str, existing_id: str | None = None) -> None:
        self.name = name
        self.existing_id = existing_id
        super().__init__(f"A template named '{name}' already exists")


class UnresolvedPlaceholder(LookupError):
    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"No value for placeholder '{token}'")


class ImageDecodeError(ValueError):
    """Embedded image bytes could not be decoded."""
