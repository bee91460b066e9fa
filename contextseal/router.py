"""
contextseal Backend Router
==========================

Builds the key provider, envelope engine and document store for a
configuration, and wires them into a ContextBoundStore.
"""

from .config import ContextSealConfig, get_config
from .engine import EnvelopeEngine, LocalEnvelopeEngine
from .facade import ContextBoundStore
from .keys import LocalMasterKeyProvider
from .store import DocumentStore, FileDocumentStore, InMemoryDocumentStore


def create_document_store(config: ContextSealConfig) -> DocumentStore:
    """Document store for the configured backend; touches no key material"""
    if config.store_backend == "memory":
        return InMemoryDocumentStore()
    elif config.store_backend == "file":
        return FileDocumentStore(config.store_dir)
    else:
        raise ValueError(f"Unknown store backend: {config.store_backend}")


class BackendRouter:
    """
    Routes a configuration to concrete backends.

    With ``create_key=False`` the master key must already exist; a missing
    key raises KeyManagementError instead of being provisioned.
    """

    def __init__(self, config: ContextSealConfig = None, create_key: bool = True):
        self.config = config or get_config()
        self.create_key = create_key
        self.key_provider = LocalMasterKeyProvider(self.config.key_alias, self.config.keys_dir)
        self.engine = self._create_engine()
        self.documents = create_document_store(self.config)

    def _create_engine(self) -> EnvelopeEngine:
        if self.create_key:
            self.key_provider.get_or_create_key()
        else:
            self.key_provider.describe()
        return LocalEnvelopeEngine(self.key_provider)

    def build(self) -> ContextBoundStore:
        return ContextBoundStore(self.engine, self.documents)


def open_store(config: ContextSealConfig = None, create_key: bool = True) -> ContextBoundStore:
    """ContextBoundStore for the given (or global) configuration"""
    return BackendRouter(config, create_key=create_key).build()
