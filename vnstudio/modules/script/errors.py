from __future__ import annotations


class ScriptParseError(ValueError):
    """Raised on the first token that does not fit the grammar."""

    def __init__(self, *, line: int, expected: str, found: str, found_kind: str) -> None:
        self.line = int(line)
        self.expected = str(expected)
        self.found = str(found)
        self.found_kind = str(found_kind)
        super().__init__(
            f"Parse error (line {self.line}): expected {self.expected}, found '{self.found}' ({self.found_kind})"
        )


class ScriptValidationError(ValueError):
    """Raised when semantic validation reports one or more errors."""

    def __init__(
        self,
        *,
        errors: list[dict[str, str | None]],
        warnings: list[dict[str, str | None]] | None = None,
    ) -> None:
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        lines = [str(item.get("message") or item.get("code")) for item in self.errors]
        super().__init__("Semantic errors:\n" + "\n".join(lines))
