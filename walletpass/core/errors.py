"""
Exception types raised while building a pass bundle.

Every failure in the build pipeline surfaces as one of these, so callers can
tell a bad descriptor apart from a missing file or a broken certificate.
"""
from typing import List, Optional


class PassError(Exception):
    """Base exception for pass bundle errors"""
    pass


class PassValidationError(PassError, ValueError):
    """Descriptor or image set failed required field / required image checks"""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class DuplicateEntryError(PassError):
    """The same archive path was produced twice for one bundle"""

    def __init__(self, path: str):
        super().__init__(f"Duplicate bundle entry: {path}")
        self.path = path


class PassIOError(PassError, OSError):
    """A declared resource could not be read"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class PassCryptoError(PassError):
    """Certificate parsing, private key decryption or signing failed"""
    pass


class PassArchiveError(PassError):
    """The archive writer failed"""
    pass


class PassConfigError(PassError):
    """Signing credentials or template are not configured"""
    pass
