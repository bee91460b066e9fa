"""
Context-Bound Store
===================

Stores documents with their encryption context bound into the ciphertext,
and hands plaintext back only once the authenticated context meets the
caller's expectations.

Usage:
    store = ContextBoundStore(engine, documents)
    doc_id = store.store(b"hello", {"purpose": "demo"})
    bundle = store.retrieve(doc_id, expected_context_keys={"purpose"})
"""

import logging
import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .context import ExpectedAssertion, normalize_context
from .engine import EnvelopeEngine
from .errors import ContextAssertionError, DecryptionError
from .store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentBundle:
    """Plaintext with the context authenticated from its ciphertext"""
    plaintext: bytes
    context: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "context", MappingProxyType(dict(self.context)))

    def __eq__(self, other):
        if not isinstance(other, DocumentBundle):
            return NotImplemented
        return self.plaintext == other.plaintext and dict(self.context) == dict(other.context)

    def __hash__(self):
        return hash((self.plaintext, frozenset(self.context.items())))


class ContextBoundStore:
    """Facade over an envelope encryption engine and a document store"""

    def __init__(self, engine: EnvelopeEngine, documents: DocumentStore):
        self.engine = engine
        self.documents = documents

    def store(self, plaintext: bytes, context: Optional[Mapping[str, str]] = None) -> str:
        """
        Encrypt and persist a document.

        Args:
            plaintext: Document bytes
            context: Encryption context, bound into the ciphertext

        Returns:
            The new document id
        """
        context = normalize_context(context)
        ciphertext, header = self.engine.encrypt(plaintext, context)

        document_id = uuid.uuid4().hex
        self.documents.put(document_id, ciphertext, header.context)

        logger.info(f"Stored document {document_id} with context keys {sorted(header.context)}")
        return document_id

    def retrieve(
        self,
        document_id: str,
        expected_context_keys: Iterable[str] = (),
        expected_context: Optional[Mapping[str, str]] = None,
    ) -> DocumentBundle:
        """
        Fetch, decrypt and check a document.

        Args:
            document_id: Id returned by :meth:`store`
            expected_context_keys: Keys that must be present in the authenticated context
            expected_context: Pairs that must appear with exactly these values

        Returns:
            DocumentBundle with the decrypted plaintext and authenticated context

        Raises:
            NotFoundError: If the document id is unknown
            DecryptionError: If the ciphertext fails authentication
            ContextAssertionError: If the authenticated context misses an expectation
        """
        assertion = ExpectedAssertion.from_args(expected_context_keys, expected_context)

        ciphertext = self.documents.get(document_id)
        logger.debug(f"{document_id}: fetched")

        try:
            plaintext, header = self.engine.decrypt(ciphertext)
        except DecryptionError as e:
            logger.warning(f"{document_id}: decryption failed: {e}")
            raise
        logger.debug(f"{document_id}: decrypted")

        try:
            assertion.check_keys(header.context)
            logger.debug(f"{document_id}: expected keys present")
            assertion.check_pairs(header.context)
            logger.debug(f"{document_id}: expected values match")
        except ContextAssertionError as e:
            logger.warning(f"{document_id}: context assertion failed: {e}")
            raise

        return DocumentBundle(plaintext=plaintext, context=header.context)
