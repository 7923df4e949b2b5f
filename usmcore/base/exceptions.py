from typing import Optional


class UsmError(Exception):
    """Base exception for all MiniUSM errors."""


class PatternCompileError(UsmError):
    """Raised when a wildcard pattern cannot be compiled into a predicate."""
    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Bad pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class UnsafeScriptError(UsmError):
    """Raised when script source uses syntax the sandbox does not allow."""
    def __init__(self, message: str, lineno: Optional[int] = None):
        if lineno is not None:
            message = f"line {lineno}: {message}"
        super().__init__(message)
        self.lineno = lineno


class CollaboratorUnavailableError(UsmError):
    """Raised when the catalog/settings collaborator cannot be reached."""


class StorageQuotaExceededError(UsmError):
    """Raised when an origin's scoped storage would grow past its quota."""
    def __init__(self, origin: str, needed: int, quota: int):
        super().__init__(f"Storage quota exceeded for {origin}: {needed} > {quota} bytes")
        self.origin = origin
        self.needed = needed
        self.quota = quota


class CatalogIntegrityError(UsmError):
    """Raised when a catalog to be saved breaks an invariant (e.g. duplicate ids)."""
