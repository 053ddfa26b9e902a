"""
Unit tests for relinking a field with an S3 folder.

The storage side is a small fake that records the prefix it was asked
for; the field side is a dict-backed store.
"""

from typing import Any

import pytest

from s3content.core.content.relink import Relinker, normalize_prefix
from s3content.infrastructure.storage.client import StorageError


class FakeLister:
    """Returns a canned listing and records requested prefixes."""

    def __init__(self, contents: list[dict] | None = None, error: Exception | None = None):
        self._contents = contents
        self._error = error
        self.prefixes: list[str] = []

    async def list_objects(self, prefix: str) -> dict:
        self.prefixes.append(prefix)
        if self._error:
            raise self._error
        response: dict[str, Any] = {"Prefix": prefix}
        if self._contents is not None:
            response["Contents"] = self._contents
        return response


class DictFieldStore:
    """FieldStore over a plain dict."""

    def __init__(self) -> None:
        self.values: dict[tuple[str, int], Any] = {}
        self.writes = 0

    def get_field(self, field_key: str, post_id: int) -> Any:
        return self.values.get((field_key, post_id))

    def update_field(self, field_key: str, value: Any, post_id: int) -> None:
        self.writes += 1
        self.values[(field_key, post_id)] = value


def _entries(*keys: str) -> list[dict]:
    return [{"Key": key, "Size": 0} for key in keys]


# ---------------------------------------------------------------------------
# Prefix Normalization
# ---------------------------------------------------------------------------

class TestNormalizePrefix:
    """Folder paths become listing prefixes."""

    @pytest.mark.parametrize("base_key", ["", "/", "//"])
    def test_root_becomes_empty_prefix(self, base_key):
        """A root relink lists the whole bucket, unprefixed."""
        assert normalize_prefix(base_key) == ""

    @pytest.mark.parametrize("base_key", ["a/b", "/a/b/", "a/b/", "/a/b"])
    def test_folder_gets_single_trailing_slash(self, base_key):
        assert normalize_prefix(base_key) == "a/b/"

    def test_single_segment(self):
        assert normalize_prefix("photos") == "photos/"


# ---------------------------------------------------------------------------
# Relink
# ---------------------------------------------------------------------------

class TestRelink:
    """Tests for Relinker.relink."""

    @pytest.mark.asyncio
    async def test_ghost_entry_is_removed(self):
        """The folder placeholder is dropped; real files stay in order."""
        lister = FakeLister(_entries("photos/", "photos/a.jpg", "photos/b.jpg"))
        store = DictFieldStore()

        items = await Relinker(lister, store).relink("gallery", 7, "photos")

        assert lister.prefixes == ["photos/"]
        assert items == ["photos/a.jpg", "photos/b.jpg"]
        assert store.values[("gallery", 7)] == ["photos/a.jpg", "photos/b.jpg"]

    @pytest.mark.asyncio
    async def test_ghost_in_the_middle_leaves_dense_list(self):
        lister = FakeLister(_entries("p/a.jpg", "p/", "p/b.jpg"))

        items = await Relinker(lister, DictFieldStore()).relink("gallery", 1, "/p/")

        assert items == ["p/a.jpg", "p/b.jpg"]
        assert isinstance(items, list)

    @pytest.mark.asyncio
    async def test_listing_without_ghost_keeps_every_entry(self):
        lister = FakeLister(_entries("p/a.jpg", "p/sub/b.jpg"))

        items = await Relinker(lister, DictFieldStore()).relink("gallery", 1, "p")

        assert items == ["p/a.jpg", "p/sub/b.jpg"]

    @pytest.mark.asyncio
    async def test_missing_contents_means_empty(self):
        """S3 omits Contents when nothing matches; that's not an error."""
        lister = FakeLister(contents=None)
        store = DictFieldStore()
        store.values[("gallery", 1)] = ["old/a.jpg"]

        items = await Relinker(lister, store).relink("gallery", 1, "empty")

        assert items == []
        assert store.values[("gallery", 1)] == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("base_key", ["", "/"])
    async def test_root_relink_lists_unprefixed(self, base_key):
        lister = FakeLister(_entries("a.jpg", "b/c.jpg"))

        items = await Relinker(lister, DictFieldStore()).relink("gallery", 1, base_key)

        assert lister.prefixes == [""]
        assert items == ["a.jpg", "b/c.jpg"]

    @pytest.mark.asyncio
    async def test_previous_value_is_replaced_not_merged(self):
        lister = FakeLister(_entries("p/new.jpg"))
        store = DictFieldStore()
        store.values[("gallery", 1)] = ["p/old.jpg", "p/new.jpg"]

        await Relinker(lister, store).relink("gallery", 1, "p")

        assert store.values[("gallery", 1)] == ["p/new.jpg"]

    @pytest.mark.asyncio
    async def test_relink_twice_gives_same_result(self):
        lister = FakeLister(_entries("p/", "p/a.jpg"))
        store = DictFieldStore()
        relinker = Relinker(lister, store)

        first = await relinker.relink("gallery", 1, "p")
        second = await relinker.relink("gallery", 1, "p")

        assert first == second == ["p/a.jpg"]
        assert store.values[("gallery", 1)] == second

    @pytest.mark.asyncio
    async def test_listing_failure_leaves_field_untouched(self):
        lister = FakeLister(error=StorageError("List objects failed: AccessDenied"))
        store = DictFieldStore()
        store.values[("gallery", 1)] = ["p/old.jpg"]

        with pytest.raises(StorageError):
            await Relinker(lister, store).relink("gallery", 1, "p")

        assert store.writes == 0
        assert store.values[("gallery", 1)] == ["p/old.jpg"]

    @pytest.mark.asyncio
    async def test_only_exact_prefix_match_is_a_ghost(self):
        """A key that merely starts with the prefix is a real object."""
        lister = FakeLister(_entries("p/", "p/.keep", "p//"))

        items = await Relinker(lister, DictFieldStore()).relink("gallery", 1, "p")

        assert items == ["p/.keep", "p//"]
