# tests/unit/test_storage_backend.py

import pytest
from datetime import datetime, timezone
from pathlib import Path

from fileoverlay.io.storage_backend import FileNamespace, DiskStorageBackend, MemoryStorageBackend
from fileoverlay.io.file_info import NotFoundFileInfo
from tests.helpers.test_utils import set_mtime, wait_until


# --- Tests for MemoryStorageBackend ---
class TestMemoryStorageBackend:

    def test_save_lookup_read_cycle(self, memory_source):
        stamp = datetime(2025, 6, 15, 14, 30, tzinfo=timezone.utc)
        assert not memory_source.exists("docs/readme.txt")

        memory_source.save("docs/readme.txt", "content", last_modified=stamp)

        info = memory_source.lookup("/docs/readme.txt")
        assert info.exists
        assert not info.is_directory
        assert info.length == len(b"content")
        assert info.last_modified == stamp
        assert info.physical_path is None
        assert memory_source.read_all("docs/readme.txt") == (b"content", stamp)
        with memory_source.open_read("docs\\readme.txt") as stream:
            assert stream.read() == b"content"

    def test_missing_file_is_reported_not_raised(self, memory_source):
        info = memory_source.lookup("missing.txt")
        assert isinstance(info, NotFoundFileInfo)
        assert not info.exists
        assert info.length == -1
        assert not memory_source.exists("../escape.txt")

        with pytest.raises(FileNotFoundError):
            memory_source.read_all("missing.txt")
        with pytest.raises(FileNotFoundError):
            memory_source.open_read("missing.txt")

    def test_directories_are_implied(self, memory_source):
        memory_source.save("root/file1.txt", "1")
        memory_source.save("root/file2.log", "2")
        memory_source.save("root/subdir/file3.txt", "3")

        assert memory_source.lookup("root/subdir").is_directory
        assert not memory_source.exists("root/subdir")

        contents = memory_source.list_directory("root")
        assert contents.exists
        assert contents.names() == ["file1.txt", "file2.log", "subdir"]
        assert [entry.is_directory for entry in contents] == [False, False, True]

        assert not memory_source.list_directory("nonexistent").exists

    def test_delete(self, memory_source):
        memory_source.save("to_delete.dat", b"data")
        assert memory_source.delete_file("to_delete.dat")
        assert not memory_source.exists("to_delete.dat")
        assert not memory_source.delete_file("to_delete.dat")

    def test_mutations_notify_matching_subscriptions(self, memory_source):
        events = []
        memory_source.watch("index.html").register_callback(lambda: events.append("index"))
        memory_source.watch("**/*.css").register_callback(lambda: events.append("css"))

        memory_source.save("index.html", "<html/>")
        memory_source.save("static/site.css", "body {}")
        memory_source.save("other.txt", "ignored")
        memory_source.set_last_modified("index.html", datetime(2024, 1, 1, tzinfo=timezone.utc))
        memory_source.delete_file("index.html")

        assert events == ["index", "css", "index", "index"]

    def test_cancelled_subscription_is_silent(self, memory_source):
        events = []
        subscription = memory_source.watch("index.html").register_callback(lambda: events.append(1))
        subscription.cancel()
        subscription.cancel()

        memory_source.save("index.html", "<html/>")
        assert events == []
        assert not subscription.active

    def test_set_last_modified_requires_existing_file(self, memory_source):
        with pytest.raises(FileNotFoundError):
            memory_source.set_last_modified("missing.txt", datetime.now(timezone.utc))


# --- Tests for DiskStorageBackend ---
class TestDiskStorageBackend:

    def test_is_a_file_namespace(self, disk_source):
        assert isinstance(disk_source, FileNamespace)

    def test_root_must_be_a_directory(self, tmp_path):
        with pytest.raises(NotADirectoryError):
            DiskStorageBackend(tmp_path / "missing")

    def test_lookup_reports_disk_metadata(self, disk_source, source_dir):
        target = source_dir / "sub" / "page.html"
        target.parent.mkdir()
        target.write_bytes(b"<html></html>")
        stamp = datetime(2025, 6, 15, 14, 30, tzinfo=timezone.utc)
        set_mtime(target, stamp)

        info = disk_source.lookup("/sub/page.html")
        assert info.exists
        assert info.length == len(b"<html></html>")
        assert info.last_modified == stamp
        assert info.physical_path == target.resolve()
        assert disk_source.read_all("sub\\page.html") == (b"<html></html>", stamp)

    def test_lookup_never_escapes_root(self, disk_source, source_dir):
        (source_dir.parent / "secret.txt").write_text("secret")
        assert not disk_source.lookup("../secret.txt").exists

    def test_list_directory(self, disk_source, source_dir):
        (source_dir / "b.txt").write_text("b")
        (source_dir / "a.txt").write_text("a")
        (source_dir / "nested").mkdir()

        contents = disk_source.list_directory("/")
        assert contents.names() == ["a.txt", "b.txt", "nested"]
        assert not disk_source.list_directory("nope").exists

    def test_watch_delivers_content_changes(self, disk_source, source_dir):
        target = source_dir / "index.html"
        target.write_text("v1")
        events = []
        subscription = disk_source.watch("index.html").register_callback(lambda: events.append(1))

        target.write_text("v2")

        assert wait_until(lambda: len(events) > 0)
        assert subscription.has_changed
        subscription.cancel()

    def test_reading_does_not_notify(self, disk_source, source_dir):
        target = source_dir / "index.html"
        target.write_text("v1")
        events = []
        disk_source.watch("index.html").register_callback(lambda: events.append(1))

        for _ in range(3):
            disk_source.read_all("index.html")

        assert not wait_until(lambda: len(events) > 0, timeout=0.5)

    def test_observer_stops_with_last_subscription(self, disk_source):
        subscription = disk_source.watch("*.html")
        assert disk_source._observer is not None

        subscription.cancel()
        assert disk_source._observer is None
