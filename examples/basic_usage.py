#!/usr/bin/env python3
"""
contextseal Basic Usage Example
===============================

Stores a document with an encryption context, then retrieves it with and
without matching expectations.
"""

import tempfile
from pathlib import Path

from contextseal import (
    ContextAssertionError, ContextSealConfig, DecryptionError, open_store
)


def main():
    """Basic usage demonstration"""

    workdir = Path(tempfile.mkdtemp())

    # 1. Configure (keys and documents live under a scratch directory here)
    config = ContextSealConfig(
        key_alias="alias/demo",
        keys_dir=str(workdir / "keys"),
        store_dir=str(workdir / "documents"),
    )
    store = open_store(config)

    print("🔐 contextseal Basic Usage Demo")
    print("=" * 50)

    # 2. Store a document with its context
    doc_id = store.store(b"Q3 payroll summary", {"department": "finance", "stage": "draft"})
    print(f"\nStored document {doc_id}")

    # 3. Retrieve with expectations that hold
    bundle = store.retrieve(
        doc_id,
        expected_context_keys={"stage"},
        expected_context={"department": "finance"},
    )
    print(f"\n✅ Retrieved: {bundle.plaintext.decode()}")
    print(f"   Context: {dict(bundle.context)}")

    # 4. Retrieve with an expectation that does not hold
    try:
        store.retrieve(doc_id, expected_context={"department": "marketing"})
    except ContextAssertionError as e:
        print(f"\n🛡️  Withheld: {e}")

    # 5. Tamper with the stored ciphertext's context
    ciphertext_file = workdir / "documents" / f"{doc_id}.ct"
    ciphertext_file.write_bytes(ciphertext_file.read_bytes().replace(b'"draft"', b'"final"'))
    try:
        store.retrieve(doc_id)
    except DecryptionError as e:
        print(f"\n🛡️  Tampering detected: {e}")


if __name__ == "__main__":
    main()
