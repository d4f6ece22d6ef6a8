"""Import error types.

A payload can fail at three points, each reported distinctly:
- the file could not be read (ImportReadError)
- the text is not JSON at all (ImportParseError, "Parse error: ..." prefix)
- the JSON has the wrong shape or version (ImportValidationError)
"""

from __future__ import annotations

from dataclasses import dataclass

from dtree.graph.errors import DtreeError

PARSE_ERROR_PREFIX = "Parse error: "


@dataclass
class ImportValidationError(DtreeError):
    """Raised when a parsed payload fails structural validation.

    Attributes:
        reason: Displayable reason, as returned by ``validate_import``.
    """

    reason: str

    kind = "validation"

    def __post_init__(self) -> None:
        super().__init__(self.reason)


@dataclass
class ImportParseError(DtreeError):
    """Raised when import text is not well-formed JSON."""

    detail: str

    kind = "parse"

    def __post_init__(self) -> None:
        super().__init__(f"{PARSE_ERROR_PREFIX}{self.detail}")


@dataclass
class ImportReadError(DtreeError):
    """Raised when the import file cannot be read."""

    path: str
    detail: str

    kind = "read"

    def __post_init__(self) -> None:
        super().__init__(f"Import failed: could not read '{self.path}': {self.detail}")
