"""
contextseal - Documents Sealed With an Encryption Context
=========================================================

Store documents under envelope encryption with non-secret key/value
metadata (the encryption context) bound into the ciphertext, and get the
plaintext back only when that authenticated context is what you expect.

Usage:
    from contextseal import configure, open_store

    configure(store_dir="./documents", key_alias="alias/workshop")
    store = open_store()

    doc_id = store.store(b"hello", {"purpose": "demo"})
    bundle = store.retrieve(doc_id, expected_context={"purpose": "demo"})

Failures:
- NotFoundError: unknown document id
- DecryptionError: ciphertext or its context was tampered with
- ContextAssertionError: genuine ciphertext, but not the context you expected
"""

from .config import configure, get_config, ContextSealConfig
from .context import ExpectedAssertion, canonicalize_context, normalize_context
from .engine import EnvelopeEngine, EnvelopeHeader, LocalEnvelopeEngine
from .facade import ContextBoundStore, DocumentBundle
from .keys import LocalMasterKeyProvider, MasterKeyProvider, normalize_alias
from .router import BackendRouter, create_document_store, open_store
from .store import DocumentStore, FileDocumentStore, InMemoryDocumentStore, StoredDocument
from .errors import (
    ContextSealError,
    NotFoundError,
    DecryptionError,
    ContextAssertionError,
    ValidationError,
    ConfigurationError,
    KeyManagementError
)

# Version
__version__ = "1.0.0"

__all__ = [
    # Core API
    "ContextBoundStore",
    "DocumentBundle",
    "open_store",

    # Context
    "ExpectedAssertion",
    "canonicalize_context",
    "normalize_context",

    # Backends
    "EnvelopeEngine",
    "EnvelopeHeader",
    "LocalEnvelopeEngine",
    "MasterKeyProvider",
    "LocalMasterKeyProvider",
    "normalize_alias",
    "DocumentStore",
    "InMemoryDocumentStore",
    "FileDocumentStore",
    "StoredDocument",
    "BackendRouter",
    "create_document_store",

    # Configuration
    "configure",
    "get_config",
    "ContextSealConfig",

    # Errors
    "ContextSealError",
    "NotFoundError",
    "DecryptionError",
    "ContextAssertionError",
    "ValidationError",
    "ConfigurationError",
    "KeyManagementError",

    # Version
    "__version__"
]
