"""
Tests for document stores
"""

import shutil
import tempfile
import uuid
from unittest.mock import patch

import pytest
from contextseal.errors import NotFoundError, ValidationError
from contextseal.store import FileDocumentStore, InMemoryDocumentStore


def new_id():
    return uuid.uuid4().hex


class StoreContract:
    """Behaviour shared by every document store"""

    def make_store(self):
        raise NotImplementedError

    def test_put_get(self):
        store = self.make_store()
        doc_id = new_id()
        store.put(doc_id, b"ciphertext", {"purpose": "demo"})

        assert store.get(doc_id) == b"ciphertext"
        assert store.exists(doc_id)

        document = store.get_document(doc_id)
        assert document.id == doc_id
        assert document.context == {"purpose": "demo"}

    def test_get_missing(self):
        store = self.make_store()
        doc_id = new_id()

        with pytest.raises(NotFoundError) as exc_info:
            store.get(doc_id)
        assert exc_info.value.document_id == doc_id
        assert not store.exists(doc_id)

    def test_unknown_id_reads_as_missing(self):
        store = self.make_store()

        for doc_id in ("no-such-doc", "../../etc/passwd", new_id()):
            assert not store.exists(doc_id)
            with pytest.raises(NotFoundError) as exc_info:
                store.get(doc_id)
            assert exc_info.value.document_id == doc_id
            with pytest.raises(NotFoundError):
                store.get_document(doc_id)

    def test_list_ids(self):
        store = self.make_store()
        ids = [new_id() for _ in range(3)]
        for doc_id in ids:
            store.put(doc_id, b"x", {})
        assert store.list_ids() == sorted(ids)

    def test_find(self):
        store = self.make_store()
        eu, us, none = new_id(), new_id(), new_id()
        store.put(eu, b"x", {"region": "eu"})
        store.put(us, b"x", {"region": "us"})
        store.put(none, b"x", {})

        assert store.find("region") == sorted([eu, us])
        assert store.find("region", "eu") == [eu]
        assert store.find("owner") == []

    def test_context_copy_is_detached(self):
        store = self.make_store()
        doc_id = new_id()
        context = {"purpose": "demo"}
        store.put(doc_id, b"x", context)
        context["purpose"] = "changed"

        assert store.get_document(doc_id).context == {"purpose": "demo"}


class TestInMemoryDocumentStore(StoreContract):
    """Test InMemoryDocumentStore"""

    def make_store(self):
        return InMemoryDocumentStore()


class TestFileDocumentStore(StoreContract):
    """Test FileDocumentStore"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_store(self):
        return FileDocumentStore(self.temp_dir)

    def test_persists_across_instances(self):
        doc_id = new_id()
        FileDocumentStore(self.temp_dir).put(doc_id, b"ciphertext", {"a": "b"})

        reopened = FileDocumentStore(self.temp_dir)
        assert reopened.get(doc_id) == b"ciphertext"
        assert reopened.find("a", "b") == [doc_id]

    def test_put_rejects_path_like_ids(self):
        store = self.make_store()
        with pytest.raises(ValidationError):
            store.put("../../etc/passwd", b"x", {})
        with pytest.raises(ValidationError):
            store.put("not-hex", b"x", {})
        assert list(store.root.iterdir()) == []

    def test_overwrite_leaves_no_temp_files(self):
        store = self.make_store()
        doc_id = new_id()
        store.put(doc_id, b"first", {"v": "1"})
        store.put(doc_id, b"second", {"v": "2"})

        assert store.get(doc_id) == b"second"
        assert sorted(p.name for p in store.root.iterdir()) == [f"{doc_id}.ct", f"{doc_id}.json"]

    def test_failed_write_keeps_previous_document(self):
        store = self.make_store()
        doc_id = new_id()
        store.put(doc_id, b"original", {"v": "1"})

        with patch("contextseal.store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.put(doc_id, b"replacement", {"v": "2"})

        assert store.get(doc_id) == b"original"
        assert store.get_document(doc_id).context == {"v": "1"}
        assert sorted(p.name for p in store.root.iterdir()) == [f"{doc_id}.ct", f"{doc_id}.json"]

    def test_missing_index_entry_reads_as_empty(self):
        store = self.make_store()
        doc_id = new_id()
        store.put(doc_id, b"x", {"a": "b"})
        (store.root / f"{doc_id}.json").unlink()

        assert store.get_document(doc_id).context == {}
        assert store.find("a") == []
