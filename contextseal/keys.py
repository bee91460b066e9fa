"""
Master Key Management
=====================

A named (aliased) master key that wraps per-message data keys.

The key lives on disk under the keys directory, one file per alias, with a
JSON metadata file next to it. It plays the part of a managed key provisioned
under an alias: callers refer to it by alias and never see the raw bytes.
"""

import base64
import json
import logging
import os
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Protocol, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import KeyManagementError, ValidationError

logger = logging.getLogger(__name__)

ALIAS_PREFIX = "alias/"
DEFAULT_ALIAS = "alias/contextseal"
MASTER_KEY_BITS = 256
NONCE_SIZE = 12

_ALIAS_NAME = re.compile(r"^[A-Za-z0-9/_-]+$")


def normalize_alias(alias: str) -> str:
    """Return ``alias/<name>`` for ``alias/<name>`` or a bare ``<name>``"""
    if not alias:
        raise ValidationError("Key alias must not be empty")
    name = alias[len(ALIAS_PREFIX):] if alias.startswith(ALIAS_PREFIX) else alias
    if not name or not _ALIAS_NAME.match(name):
        raise ValidationError(f"Invalid key alias: {alias!r}")
    return ALIAS_PREFIX + name


class MasterKeyProvider(Protocol):
    """What the envelope engine needs from a master key"""

    alias: str

    @property
    def key_id(self) -> str:
        ...

    def wrap_data_key(self, data_key: bytes, aad: bytes) -> bytes:
        ...

    def unwrap_data_key(self, wrapped: bytes, aad: bytes, key_id: str) -> bytes:
        ...


class LocalMasterKeyProvider:
    """File-backed master key addressed by alias"""

    def __init__(self, alias: str = DEFAULT_ALIAS, keys_dir: str = "~/.contextseal/keys"):
        self.alias = normalize_alias(alias)
        self.key_dir = Path(keys_dir).expanduser()
        self.key_dir.mkdir(parents=True, exist_ok=True, mode=0o700)

        file_stem = self.alias[len(ALIAS_PREFIX):].replace("/", "__")
        self.key_file = self.key_dir / f"{file_stem}.key"
        self.metadata_file = self.key_dir / f"{file_stem}.meta"

        self._key: bytes = None
        self._metadata: Dict[str, Any] = None

    def exists(self) -> bool:
        return self.key_file.exists() and self.metadata_file.exists()

    def create_key(self) -> Dict[str, Any]:
        """Generate and store a new master key. Fails if the alias is taken."""
        if self.exists():
            raise KeyManagementError(f"Master key already exists for {self.alias}")

        key = AESGCM.generate_key(bit_length=MASTER_KEY_BITS)
        metadata = {
            "alias": self.alias,
            "key_id": str(uuid.uuid4()),
            "created_at": datetime.now(timezone.utc).isoformat(),
            "algorithm": "AES-256-GCM",
        }
        self._store(key, metadata)
        self._key, self._metadata = key, metadata

        logger.info(f"Created master key {metadata['key_id']} for {self.alias}")
        return dict(metadata)

    def get_or_create_key(self) -> Dict[str, Any]:
        """Load the master key, creating it on first use. Returns its metadata."""
        if not self.exists():
            return self.create_key()
        self._ensure_loaded()
        return dict(self._metadata)

    def describe(self) -> Dict[str, Any]:
        """Metadata of the stored key (never the key material)"""
        self._ensure_loaded()
        return dict(self._metadata)

    @property
    def key_id(self) -> str:
        self._ensure_loaded()
        return self._metadata["key_id"]

    def wrap_data_key(self, data_key: bytes, aad: bytes) -> bytes:
        """Encrypt a data key under the master key. Returns nonce + ciphertext."""
        self._ensure_loaded()
        nonce = os.urandom(NONCE_SIZE)
        return nonce + AESGCM(self._key).encrypt(nonce, data_key, aad)

    def unwrap_data_key(self, wrapped: bytes, aad: bytes, key_id: str) -> bytes:
        """Decrypt a data key wrapped by :meth:`wrap_data_key`"""
        self._ensure_loaded()
        if key_id != self._metadata["key_id"]:
            raise KeyManagementError(
                f"Data key was wrapped by {key_id}, not by {self.alias} ({self._metadata['key_id']})"
            )
        if len(wrapped) <= NONCE_SIZE:
            raise KeyManagementError("Wrapped data key is truncated")

        nonce, ciphertext = wrapped[:NONCE_SIZE], wrapped[NONCE_SIZE:]
        try:
            return AESGCM(self._key).decrypt(nonce, ciphertext, aad)
        except InvalidTag as e:
            raise KeyManagementError("Data key failed authentication") from e

    def _ensure_loaded(self):
        if self._key is None:
            self._key, self._metadata = self._load()

    def _load(self) -> Tuple[bytes, Dict[str, Any]]:
        if not self.exists():
            raise KeyManagementError(f"No master key found for {self.alias}")
        try:
            key = base64.b64decode(self.key_file.read_text().strip())
            metadata = json.loads(self.metadata_file.read_text())
        except (OSError, ValueError) as e:
            raise KeyManagementError(f"Could not load master key for {self.alias}: {e}") from e

        if len(key) * 8 != MASTER_KEY_BITS:
            raise KeyManagementError(f"Master key for {self.alias} has the wrong length")
        return key, metadata

    def _store(self, key: bytes, metadata: Dict[str, Any]):
        """Write key and metadata, created exclusively with owner-only permissions"""
        try:
            _write_private(self.key_file, base64.b64encode(key).decode())
        except FileExistsError as e:
            raise KeyManagementError(f"Master key already exists for {self.alias}") from e

        try:
            _write_private(self.metadata_file, json.dumps(metadata, indent=2))
        except OSError as e:
            self.key_file.unlink()
            if isinstance(e, FileExistsError):
                raise KeyManagementError(f"Stale key metadata exists for {self.alias}") from e
            raise


def _write_private(path: Path, text: str) -> None:
    """Create ``path`` with mode 0600; fails if it already exists"""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(text)
