"""
Error Definitions
=================

Every failure a caller can see from contextseal. The three retrieval
failures (not found, decryption, assertion) stay distinct types.
"""

from typing import Dict, Iterable, Mapping, Optional


class ContextSealError(Exception):
    """Base exception for contextseal"""
    pass


class NotFoundError(ContextSealError):
    """Raised when a document id is not in the store"""

    def __init__(self, message: str, document_id: str = None):
        super().__init__(message)
        self.document_id = document_id


class DecryptionError(ContextSealError):
    """Raised when a ciphertext cannot be authenticated or decrypted"""
    pass


class ContextAssertionError(ContextSealError, AssertionError):
    """Raised when the authenticated context does not meet the caller's expectations.

    Decryption succeeded, so the ciphertext is genuine; only the caller's
    expectations about its context were not met.
    """

    def __init__(
        self,
        message: str,
        expected_keys: Iterable[str] = (),
        expected_context: Optional[Mapping[str, str]] = None,
        actual_context: Optional[Mapping[str, str]] = None,
        missing_keys: Iterable[str] = (),
        mismatched: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.expected_keys = frozenset(expected_keys)
        self.expected_context = dict(expected_context or {})
        self.actual_context = dict(actual_context or {})
        self.missing_keys = sorted(missing_keys)
        self.mismatched = dict(mismatched or {})


class ValidationError(ContextSealError):
    """Raised when an encryption context or identifier is malformed"""
    pass


class ConfigurationError(ContextSealError):
    """Raised when configuration is invalid"""
    pass


class KeyManagementError(ContextSealError):
    """Raised when a master key cannot be created, loaded or used"""
    pass
