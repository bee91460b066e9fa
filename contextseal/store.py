"""
Document Stores
===============

Persist ciphertext together with a copy of its encryption context.

The context copy is only there for lookup (``find``). It is not trusted:
the authoritative context is the one authenticated out of the ciphertext.
"""

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol

from .context import Context
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_DOCUMENT_ID = re.compile(r"^[0-9a-f]{32}$")


def _is_document_id(document_id) -> bool:
    return isinstance(document_id, str) and bool(_DOCUMENT_ID.match(document_id))


@dataclass(frozen=True)
class StoredDocument:
    """Ciphertext plus the index copy of its context"""
    id: str
    ciphertext: bytes
    context: Context = field(default_factory=dict)


class DocumentStore(Protocol):
    """Protocol for anything that can hold encrypted documents"""

    def put(self, document_id: str, ciphertext: bytes, context: Mapping[str, str]) -> None:
        ...

    def get(self, document_id: str) -> bytes:
        ...


def _matches(context: Mapping[str, str], key: str, value: Optional[str]) -> bool:
    if key not in context:
        return False
    return value is None or context[key] == value


class InMemoryDocumentStore:
    """Dict-backed store, for tests and short-lived processes"""

    def __init__(self):
        self._documents: Dict[str, StoredDocument] = {}

    def put(self, document_id: str, ciphertext: bytes, context: Mapping[str, str]) -> None:
        self._documents[document_id] = StoredDocument(document_id, bytes(ciphertext), dict(context))

    def get(self, document_id: str) -> bytes:
        return self.get_document(document_id).ciphertext

    def get_document(self, document_id: str) -> StoredDocument:
        try:
            return self._documents[document_id]
        except KeyError:
            raise NotFoundError(f"Document not found: {document_id}", document_id=document_id)

    def exists(self, document_id: str) -> bool:
        return document_id in self._documents

    def list_ids(self) -> List[str]:
        return sorted(self._documents)

    def find(self, key: str, value: Optional[str] = None) -> List[str]:
        """Ids whose index context has ``key`` (and ``value``, if given)"""
        return sorted(
            doc.id for doc in self._documents.values() if _matches(doc.context, key, value)
        )


class FileDocumentStore:
    """
    Directory-backed store.

    Each document is two files: ``<id>.ct`` with the ciphertext and
    ``<id>.json`` with the context copy. Both are replaced atomically, the
    ciphertext first. Ids that could not have been issued read as absent.
    """

    def __init__(self, root: str = "./documents"):
        self.root = Path(root).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)

    def put(self, document_id: str, ciphertext: bytes, context: Mapping[str, str]) -> None:
        if not _is_document_id(document_id):
            raise ValidationError(f"Invalid document id: {document_id!r}")
        ciphertext_file, metadata_file = self._paths(document_id)
        self._replace(ciphertext_file, bytes(ciphertext))
        index = json.dumps({"id": document_id, "context": dict(context)}, indent=2)
        self._replace(metadata_file, index.encode('utf-8'))
        logger.debug(f"Wrote document {document_id} to {self.root}")

    def get(self, document_id: str) -> bytes:
        if not self.exists(document_id):
            raise NotFoundError(f"Document not found: {document_id}", document_id=document_id)
        ciphertext_file, _ = self._paths(document_id)
        try:
            return ciphertext_file.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(f"Document not found: {document_id}", document_id=document_id)

    def get_document(self, document_id: str) -> StoredDocument:
        ciphertext = self.get(document_id)
        return StoredDocument(document_id, ciphertext, self._load_context(document_id))

    def exists(self, document_id: str) -> bool:
        if not _is_document_id(document_id):
            return False
        ciphertext_file, _ = self._paths(document_id)
        return ciphertext_file.exists()

    def list_ids(self) -> List[str]:
        return sorted(
            path.stem for path in self.root.glob("*.ct") if _DOCUMENT_ID.match(path.stem)
        )

    def find(self, key: str, value: Optional[str] = None) -> List[str]:
        """Ids whose index context has ``key`` (and ``value``, if given)"""
        return [
            document_id for document_id in self.list_ids()
            if _matches(self._load_context(document_id), key, value)
        ]

    def _load_context(self, document_id: str) -> Context:
        _, metadata_file = self._paths(document_id)
        if not metadata_file.exists():
            return {}
        try:
            return json.loads(metadata_file.read_text()).get("context", {})
        except ValueError as e:
            logger.warning(f"Unreadable index entry for {document_id}: {e}")
            return {}

    def _replace(self, target: Path, data: bytes) -> None:
        """Write to a temp file in the store root, then rename over ``target``"""
        fd, temp_path = tempfile.mkstemp(dir=self.root, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(temp_path, target)
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise

    def _paths(self, document_id: str):
        return self.root / f"{document_id}.ct", self.root / f"{document_id}.json"
