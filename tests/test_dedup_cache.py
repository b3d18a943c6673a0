from __future__ import annotations

from fakes import FakeDocumentStore
from ingest.dedup_cache import DedupCache

DB = "NPIDB"
COLLECTION = "NPIDATA"


class TestDedupCache:

    def setup_method(self):
        self.store = FakeDocumentStore()
        self.store.add_collection(COLLECTION, ["NPI"])

    def test_contains_and_add(self):
        cache = DedupCache()
        assert "A" not in cache
        cache.add("A")
        assert "A" in cache
        assert cache.contains("A")
        assert len(cache) == 1

    def test_warm_pages_through_every_document(self):
        self.store.seed_documents(COLLECTION, 1234)
        cache = DedupCache()

        keys = cache.warm(self.store, DB, COLLECTION,
                          key_field="NPI", page_size=500)

        assert len(keys) == 1234
        assert "0" in cache and "1233" in cache
        # 3 pages with data, then an empty page
        assert self.store.calls("list_documents") == [500, 500, 500, 500]

    def test_warm_on_empty_collection(self):
        cache = DedupCache()

        keys = cache.warm(self.store, DB, COLLECTION,
                          key_field="NPI", page_size=500)

        assert keys == set()
        assert len(self.store.calls("list_documents")) == 1

    def test_documents_without_key_are_ignored(self):
        self.store.documents[COLLECTION] = [
            {"$id": "a", "NPI": "111"},
            {"$id": "b", "NPI": None},
            {"$id": "c"},
        ]
        cache = DedupCache()

        keys = cache.warm(self.store, DB, COLLECTION,
                          key_field="NPI", page_size=2)

        assert keys == {"111"}

    def test_returned_keys_are_a_copy(self):
        cache = DedupCache(["A"])
        self.store.seed_documents(COLLECTION, 1, prefix="B")

        keys = cache.warm(self.store, DB, COLLECTION,
                          key_field="NPI", page_size=10)
        keys.add("Z")

        assert "Z" not in cache
        assert cache.keys() == frozenset({"A", "B0"})
