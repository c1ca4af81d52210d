from vfs_core.testing.memory_store import InMemoryObjectStore, StoreOp

__all__ = ["InMemoryObjectStore", "StoreOp"]
