"""
Envelope Encryption Engine
==========================

Encrypts each message under a fresh data key and wraps that data key with a
named master key. The encryption context travels inside the message header
and is authenticated, so it cannot change without decryption failing.

Message format:
    MAGIC (6) | version (1) | header_len (4, big-endian) | header JSON
    nonce (12) | AES-256-GCM body

The header JSON holds the key alias, the key id, the wrapped data key and
the context. The whole prefix up to the end of the header is the body's
associated data; the canonical context is the associated data of the data
key wrap.
"""

import base64
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Protocol, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .context import Context, canonicalize_context, normalize_context
from .errors import DecryptionError, KeyManagementError, ValidationError
from .keys import MasterKeyProvider

logger = logging.getLogger(__name__)

MAGIC = b"CSEAL1"
VERSION = 1
NONCE_SIZE = 12
DATA_KEY_BITS = 256

_PREFIX_SIZE = len(MAGIC) + 1 + 4


@dataclass(frozen=True)
class EnvelopeHeader:
    """Authenticated header of an encrypted message"""

    key_alias: str
    key_id: str
    encrypted_data_key: bytes
    context: Context = field(default_factory=dict)
    version: int = VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "key_alias": self.key_alias,
            "key_id": self.key_id,
            "encrypted_data_key": base64.b64encode(self.encrypted_data_key).decode(),
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EnvelopeHeader':
        return cls(
            version=data["version"],
            key_alias=data["key_alias"],
            key_id=data["key_id"],
            encrypted_data_key=base64.b64decode(data["encrypted_data_key"], validate=True),
            context=normalize_context(data["context"]),
        )


class EnvelopeEngine(Protocol):
    """
    Protocol every envelope encryption engine implements.

    ``decrypt`` must fail when the ciphertext is corrupted or its context
    has been altered.
    """

    def encrypt(self, plaintext: bytes, context: Mapping[str, str]) -> Tuple[bytes, EnvelopeHeader]:
        ...

    def decrypt(self, ciphertext: bytes) -> Tuple[bytes, EnvelopeHeader]:
        ...


class LocalEnvelopeEngine:
    """Envelope encryption with AES-256-GCM and a local master key"""

    def __init__(self, key_provider: MasterKeyProvider):
        self.key_provider = key_provider

    def encrypt(self, plaintext: bytes, context: Mapping[str, str]) -> Tuple[bytes, EnvelopeHeader]:
        """Encrypt plaintext with context bound as authenticated data"""
        context = normalize_context(context)
        data_key = AESGCM.generate_key(bit_length=DATA_KEY_BITS)

        header = EnvelopeHeader(
            key_alias=self.key_provider.alias,
            key_id=self.key_provider.key_id,
            encrypted_data_key=self.key_provider.wrap_data_key(data_key, canonicalize_context(context)),
            context=context,
        )
        prefix = _encode_prefix(header)

        nonce = os.urandom(NONCE_SIZE)
        body = AESGCM(data_key).encrypt(nonce, plaintext, prefix)
        logger.debug(f"Encrypted {len(plaintext)} bytes under {header.key_alias} ({header.key_id})")
        return prefix + nonce + body, header

    def decrypt(self, ciphertext: bytes) -> Tuple[bytes, EnvelopeHeader]:
        """Authenticate and decrypt a message, recovering its context"""
        try:
            header, prefix_len = _decode_prefix(ciphertext)
        except ValueError as e:
            raise DecryptionError(f"Malformed ciphertext: {e}") from e

        if header.key_alias != self.key_provider.alias:
            raise DecryptionError(
                f"Ciphertext was encrypted under {header.key_alias}, not {self.key_provider.alias}"
            )

        try:
            data_key = self.key_provider.unwrap_data_key(
                header.encrypted_data_key, canonicalize_context(header.context), header.key_id
            )
        except KeyManagementError as e:
            raise DecryptionError(f"Could not recover data key: {e}") from e

        prefix = ciphertext[:prefix_len]
        nonce = ciphertext[prefix_len:prefix_len + NONCE_SIZE]
        body = ciphertext[prefix_len + NONCE_SIZE:]
        if len(nonce) < NONCE_SIZE or not body:
            raise DecryptionError("Malformed ciphertext: truncated body")

        try:
            plaintext = AESGCM(data_key).decrypt(nonce, body, prefix)
        except InvalidTag as e:
            raise DecryptionError("Ciphertext failed authentication") from e

        return plaintext, header


def _encode_prefix(header: EnvelopeHeader) -> bytes:
    header_json = json.dumps(header.to_dict(), sort_keys=True, separators=(',', ':')).encode('utf-8')
    return MAGIC + bytes([header.version]) + len(header_json).to_bytes(4, "big") + header_json


def _decode_prefix(ciphertext: bytes) -> Tuple[EnvelopeHeader, int]:
    if len(ciphertext) < _PREFIX_SIZE:
        raise ValueError("truncated prefix")
    if ciphertext[:len(MAGIC)] != MAGIC:
        raise ValueError("not a contextseal message")

    version = ciphertext[len(MAGIC)]
    if version != VERSION:
        raise ValueError(f"unsupported version: {version}")

    header_len = int.from_bytes(ciphertext[len(MAGIC) + 1:_PREFIX_SIZE], "big")
    end = _PREFIX_SIZE + header_len
    if len(ciphertext) < end:
        raise ValueError("truncated header")

    try:
        data = json.loads(ciphertext[_PREFIX_SIZE:end].decode('utf-8'))
        header = EnvelopeHeader.from_dict(data)
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise ValueError(f"invalid header: {e}") from e

    if header.version != version:
        raise ValueError("header version does not match prefix")
    return header, end
