from __future__ import annotations


class StructureError(Exception):
    """The document tree has no recognizable invoice root, items or totals."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source

    def __str__(self) -> str:
        message = super().__str__()
        if self.source:
            return f"{self.source}: {message}"
        return message
