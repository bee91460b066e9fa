"""
Integration tests for contextseal
"""

import shutil
import tempfile
from pathlib import Path

import pytest
from contextseal import (
    BackendRouter, ContextAssertionError, ContextSealConfig, DecryptionError,
    DocumentBundle, KeyManagementError, LocalMasterKeyProvider, NotFoundError, open_store
)


class TestIntegration:
    """Full store/retrieve flow through configuration and the router"""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config = ContextSealConfig(
            key_alias="alias/integration",
            keys_dir=str(self.temp_dir / "keys"),
            store_backend="file",
            store_dir=str(self.temp_dir / "documents"),
        )

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_retrieve_after_reopen(self):
        doc_id = open_store(self.config).store(b"quarterly report", {"department": "finance"})

        bundle = open_store(self.config).retrieve(doc_id, expected_context={"department": "finance"})
        assert bundle == DocumentBundle(b"quarterly report", {"department": "finance"})

    def test_edited_index_does_not_change_authenticated_context(self):
        store = open_store(self.config)
        doc_id = store.store(b"payroll", {"department": "finance"})

        index_file = self.temp_dir / "documents" / f"{doc_id}.json"
        index_file.write_text(index_file.read_text().replace("finance", "marketing"))

        assert store.documents.find("department", "marketing") == [doc_id]
        with pytest.raises(ContextAssertionError):
            store.retrieve(doc_id, expected_context={"department": "marketing"})

    def test_edited_ciphertext_fails(self):
        store = open_store(self.config)
        doc_id = store.store(b"payroll", {"department": "finance"})

        ciphertext_file = self.temp_dir / "documents" / f"{doc_id}.ct"
        ciphertext_file.write_bytes(
            ciphertext_file.read_bytes().replace(b'"finance"', b'"FINANCE"')
        )

        with pytest.raises(DecryptionError):
            store.retrieve(doc_id)

    @pytest.mark.parametrize("backend", ["file", "memory"])
    def test_unknown_id_is_not_found_on_every_backend(self, backend):
        self.config.store_backend = backend
        store = open_store(self.config)

        with pytest.raises(NotFoundError):
            store.retrieve("no-such-doc")
        with pytest.raises(NotFoundError):
            store.retrieve("0" * 32)

    def test_open_without_create_key_requires_existing_key(self):
        with pytest.raises(KeyManagementError, match="No master key"):
            open_store(self.config, create_key=False)

        provider = LocalMasterKeyProvider(self.config.key_alias, self.config.keys_dir)
        assert not provider.exists()

        doc_id = open_store(self.config).store(b"hello", {})
        assert open_store(self.config, create_key=False).retrieve(doc_id).plaintext == b"hello"

    def test_memory_backend(self):
        self.config.store_backend = "memory"
        router = BackendRouter(self.config)
        store = router.build()

        doc_id = store.store(b"hello", {"purpose": "demo"})
        assert store.retrieve(doc_id, expected_context_keys={"purpose"}).plaintext == b"hello"
        assert router.documents.list_ids() == [doc_id]
