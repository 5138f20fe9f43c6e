"""Custom exceptions for depsweep."""


class DepsweepError(Exception):
    """Base exception for all depsweep errors."""


class ManifestError(DepsweepError):
    """Raised when the project manifest is missing or cannot be parsed."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"Could not read {path}: {detail}")
