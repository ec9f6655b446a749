"""Tests for the local file store and the key/value store."""

import json

import pytest

from savebutton.storage import Collection, FileNotFoundInStore, KeyValueStore, LocalFileStore


class TestLocalFileStore:
    """Local file store behaviour."""

    @pytest.mark.asyncio
    async def test_write_then_read(self, file_store):
        await file_store.write(Collection.ANGA, "2026-01-01T000000-a.md", b"# hello")

        assert await file_store.read(Collection.ANGA, "2026-01-01T000000-a.md") == b"# hello"
        assert await file_store.read_text("anga", "2026-01-01T000000-a.md") == "# hello"

    @pytest.mark.asyncio
    async def test_write_creates_missing_directories(self, tmp_path):
        store = LocalFileStore(tmp_path / "fresh")

        await store.write(Collection.META, "note.toml", "x = 1")

        assert (tmp_path / "fresh" / "meta" / "note.toml").read_text() == "x = 1"

    @pytest.mark.asyncio
    async def test_read_missing_file_raises_not_found(self, file_store):
        with pytest.raises(FileNotFoundInStore) as exc_info:
            await file_store.read(Collection.ANGA, "missing.md")

        assert exc_info.value.filename == "missing.md"
        assert exc_info.value.collection == "anga"

    @pytest.mark.asyncio
    async def test_list_excludes_dotfiles_and_directories(self, file_store):
        await file_store.write(Collection.ANGA, "visible.url", b"")
        await file_store.write(Collection.ANGA, ".DS_Store", b"")
        (file_store.collection_dir(Collection.ANGA) / "subdir").mkdir()

        assert await file_store.list(Collection.ANGA) == {"visible.url"}

    @pytest.mark.asyncio
    async def test_list_of_absent_collection_is_empty(self, tmp_path):
        store = LocalFileStore(tmp_path / "nothing-here")

        assert await store.list(Collection.META) == set()

    @pytest.mark.asyncio
    async def test_rejects_path_traversal(self, file_store):
        for bad in ("../escape", "a/b", "", "..", "."):
            with pytest.raises(ValueError):
                await file_store.write(Collection.ANGA, bad, b"x")

    @pytest.mark.asyncio
    async def test_words_require_a_namespace(self, file_store):
        with pytest.raises(ValueError):
            await file_store.write(Collection.WORDS, "tags.json", b"{}")

    @pytest.mark.asyncio
    async def test_words_namespaces(self, file_store):
        await file_store.write_within_namespace("2026-01-01T000000-a.md", "tags.json", '["x"]')
        await file_store.write_within_namespace("2026-01-01T000000-a.md", "summary.md", "short")
        await file_store.write_within_namespace("2026-01-02T000000-b.url", "tags.json", "[]")
        (file_store.collection_dir(Collection.WORDS) / "stray-file").write_text("not a namespace")

        assert await file_store.list_namespaces() == {
            "2026-01-01T000000-a.md",
            "2026-01-02T000000-b.url",
        }
        assert await file_store.list_within_namespace("2026-01-01T000000-a.md") == {"tags.json", "summary.md"}
        assert await file_store.list_within_namespace("never-created") == set()
        assert await file_store.read_within_namespace("2026-01-01T000000-a.md", "tags.json") == '["x"]'

    @pytest.mark.asyncio
    async def test_read_all_bookmark_urls(self, file_store):
        await file_store.write(
            Collection.ANGA,
            "2026-01-01T000000-example-com.url",
            "[InternetShortcut]\nURL=https://example.com/page\n"
        )
        await file_store.write(
            Collection.ANGA,
            "2026-01-02T000000-other-org.url",
            "[InternetShortcut]\r\nURL=https://other.org/\r\n"
        )
        await file_store.write(Collection.ANGA, "2026-01-03T000000-quote.md", "URL=https://not-a-bookmark.com")
        await file_store.write(Collection.ANGA, "2026-01-04T000000-broken.url", b"\xff\xfe\x00garbage")

        assert await file_store.read_all_bookmark_urls() == {
            "https://example.com/page",
            "https://other.org/",
        }


class TestKeyValueStore:
    """Persistent key/value store behaviour."""

    @pytest.mark.asyncio
    async def test_set_get_remove(self, kv_store):
        await kv_store.set({"server": "https://savebutton.com", "configured": True})

        assert await kv_store.get(["server", "configured", "absent"]) == {
            "server": "https://savebutton.com",
            "configured": True,
        }

        await kv_store.remove("server")
        assert await kv_store.get("server") == {}
        assert await kv_store.get_all() == {"configured": True}

    @pytest.mark.asyncio
    async def test_values_survive_a_new_instance(self, kv_store):
        await kv_store.set({"email": "reader@example.com"})

        reopened = KeyValueStore(kv_store.path)
        assert await reopened.get("email") == {"email": "reader@example.com"}

    @pytest.mark.asyncio
    async def test_corrupt_document_reads_as_empty(self, kv_store):
        kv_store.path.parent.mkdir(parents=True, exist_ok=True)
        kv_store.path.write_text("{not json")

        assert await kv_store.get_all() == {}

        await kv_store.set({"email": "a@b.c"})
        assert json.loads(kv_store.path.read_text()) == {"email": "a@b.c"}

    @pytest.mark.asyncio
    async def test_removing_absent_keys_does_not_write(self, kv_store):
        await kv_store.set({"email": "a@b.c"})
        before = kv_store.path.stat().st_mtime_ns

        await kv_store.remove(["password", "cryptoKey"])

        assert kv_store.path.stat().st_mtime_ns == before
