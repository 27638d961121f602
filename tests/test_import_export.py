"""
Tests for rl/importers.py, rl/exporters.py and LinkStore.import_links()

Covers the JSON wire format, the import merge policy, skipped records
and aborted imports.
"""
import io
import json
from datetime import datetime, timezone

import pytest

from rl.config import RlConfig
from rl.db import LinkStore, ReadStatus, ImportReport
from rl.errors import InvalidInputError, ImportAbortedError, StorageError
from rl.exporters import export_to_string, export_json, export_file, links_to_data
from rl.importers import parse_json, load_json, import_file, record_from_dict
from rl.models import LinkRecord


class TestExport:
    """Test the JSON export format."""

    def test_omits_empty_fields(self, store):
        store.add("https://example.com")
        data = links_to_data(store.export())
        assert len(data) == 1
        assert set(data[0]) == {"id", "url", "created_at"}

    def test_full_record(self, store):
        link, _ = store.add("https://example.com", title="T", note="N", tags="a,b")
        store.mark_read(link.id)
        data = links_to_data(store.export())[0]
        assert data["id"] == link.id
        assert data["title"] == "T"
        assert data["note"] == "N"
        assert data["tags"] == "a,b"
        assert data["created_at"].endswith("Z")
        assert data["read_at"].endswith("Z")

    def test_pretty_and_compact(self, populated_store):
        links = populated_store.export()
        pretty = export_to_string(links, pretty=True)
        compact = export_to_string(links, pretty=False)
        assert "\n" in pretty
        assert "\n" not in compact
        assert json.loads(pretty) == json.loads(compact)

    def test_export_json_stream(self, populated_store):
        out = io.StringIO()
        export_json(populated_store.export(), out)
        assert len(json.loads(out.getvalue())) == 4

    def test_export_file(self, populated_store, tmp_path):
        path = tmp_path / "out" / "backup.json"
        export_file(populated_store.export(), path)
        assert len(json.loads(path.read_text(encoding="utf-8"))) == 4

    def test_non_ascii_preserved(self, store):
        store.add("https://example.com", title="Café ☕")
        assert "Café ☕" in export_to_string(store.export())


class TestParse:
    """Test parsing the JSON wire format."""

    def test_parse_sample(self, sample_export):
        records = parse_json(json.dumps(sample_export))
        assert len(records) == 3
        first = records[0]
        assert first.id == "9m1w2z3xk4p5q6r7s8t9u0v1wa"
        assert first.created_at == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        assert first.read_at == datetime(2024, 1, 2, 10, 30, tzinfo=timezone.utc)
        assert records[1].id is None
        assert records[1].created_at == datetime(2024, 2, 1, 8, tzinfo=timezone.utc)
        assert records[2].title == ""
        assert records[2].read_at is None

    @pytest.mark.parametrize("data", ["", "not json", "[{", '{"url": "https://x.com"}', "42"])
    def test_malformed(self, data):
        with pytest.raises(InvalidInputError):
            parse_json(data)

    def test_empty_array(self):
        assert parse_json("[]") == []

    @pytest.mark.parametrize("item", [
        "https://example.com",
        {"url": "https://example.com", "title": 3},
        {"url": "https://example.com", "created_at": "yesterday"},
        {"url": "https://example.com", "read_at": 1700000000},
    ])
    def test_bad_record(self, item):
        with pytest.raises(InvalidInputError):
            record_from_dict(item, 0)

    @pytest.mark.parametrize("item", [{}, {"url": 5}, {"url": None, "title": "x"}])
    def test_missing_url_left_to_store(self, item):
        assert record_from_dict(item, 0).url == ""

    def test_tags_as_list(self):
        record = record_from_dict({"url": "https://example.com", "tags": ["a", "b"]})
        assert record.tags == "a,b"

    def test_null_fields(self):
        record = record_from_dict({
            "url": "https://example.com", "title": None, "read_at": None, "id": None,
        })
        assert record.title == ""
        assert record.read_at is None
        assert record.id is None

    def test_load_json(self, export_file_path):
        assert len(load_json(export_file_path)) == 3


class TestImport:
    """Test LinkStore.import_links() and import_file()."""

    def test_import_new(self, store, export_file_path):
        report = import_file(store, export_file_path)
        assert isinstance(report, ImportReport)
        assert report.created == 3
        assert report.updated == 0
        assert report.imported == 3
        assert report.skipped == []

        links = {link.url: link for link in store.export()}
        docs = links["https://docs.python.org"]
        assert docs.id == "9m1w2z3xk4p5q6r7s8t9u0v1wa"
        assert docs.created_at == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        assert docs.is_read
        assert not links["https://github.com"].is_read

    def test_missing_created_at_gets_now(self, store):
        store.import_links([LinkRecord(url="https://example.com")])
        link = store.export()[0]
        assert link.created_at is not None
        assert link.created_at.year >= 2024

    def test_import_is_idempotent(self, store, export_file_path):
        import_file(store, export_file_path)
        before = links_to_data(store.export())

        report = import_file(store, export_file_path)
        assert report.created == 0
        assert report.updated == 3
        assert links_to_data(store.export()) == before

    def test_existing_text_wins(self, store):
        link, _ = store.add("https://example.com", title="Mine", tags="Python")
        store.import_links([LinkRecord(
            url="https://example.com", title="Theirs", note="Their note", tags="python,web",
        )])
        merged = store.get(link.id)
        assert merged.title == "Mine"
        assert merged.note == "Their note"
        assert merged.tags == "Python,web"

    def test_existing_id_kept_on_merge(self, store):
        link, _ = store.add("https://example.com")
        other = "zzzzzzzzzzzzzzzzzzzzzzzzzz"
        store.import_links([LinkRecord(url="https://example.com", id=other)])
        assert store.get(link.id).url == "https://example.com"
        assert len(store.export()) == 1

    def test_existing_created_at_kept(self, store):
        link, _ = store.add("https://example.com")
        created_at = store.get(link.id).created_at
        store.import_links([LinkRecord(
            url="https://example.com", created_at=datetime(2001, 1, 1, tzinfo=timezone.utc),
        )])
        assert store.get(link.id).created_at == created_at

    def test_unread_snapshot_clears_read_state(self, store):
        link, _ = store.add("https://example.com")
        snapshot = export_to_string(store.export())
        store.mark_read(link.id)
        assert store.get(link.id).is_read

        store.import_links(parse_json(snapshot))
        assert store.get(link.id).read_at is None

    def test_read_snapshot_sets_read_at(self, store):
        link, _ = store.add("https://example.com")
        read_at = datetime(2024, 5, 5, 5, 5, 5, tzinfo=timezone.utc)
        store.import_links([LinkRecord(url="https://example.com", read_at=read_at)])
        assert store.get(link.id).read_at == read_at

    def test_round_trip_into_fresh_store(self, populated_store, tmp_path, test_config):
        path = tmp_path / "backup.json"
        export_file(populated_store.export(), path)

        with LinkStore(str(tmp_path / "fresh.db"), config=test_config) as fresh:
            report = import_file(fresh, path)
            assert report.created == 4
            by_url = lambda links: sorted(links_to_data(links), key=lambda d: d["url"])
            assert by_url(fresh.export()) == by_url(populated_store.export())
            assert len(fresh.list(ReadStatus.READ)) == 1

    def test_invalid_records_skipped(self, store):
        report = store.import_links([
            LinkRecord(url="https://good.example"),
            LinkRecord(url="not-a-url"),
            LinkRecord(url="https://bad-id.example", id="bad id"),
            LinkRecord(url="https://also-good.example"),
        ])
        assert report.created == 2
        assert [s.index for s in report.skipped] == [1, 2]
        assert report.skipped[0].url == "not-a-url"
        assert {link.url for link in store.export()} == {
            "https://good.example", "https://also-good.example",
        }

    def test_record_without_url_skipped(self, store):
        records = parse_json(json.dumps([
            {"url": "https://ok.example"},
            {"title": "no url"},
            {"url": "https://ok2.example"},
        ]))
        report = store.import_links(records)

        assert report.created == 2
        assert [s.index for s in report.skipped] == [1]
        assert {link.url for link in store.export()} == {
            "https://ok.example", "https://ok2.example",
        }

    def test_storage_failure_aborts(self, store):
        existing, _ = store.add("https://taken.example")
        records = [
            LinkRecord(url="https://first.example"),
            LinkRecord(url="https://collides.example", id=existing.id),
            LinkRecord(url="https://never.example"),
        ]
        with pytest.raises(ImportAbortedError) as exc_info:
            store.import_links(records)

        error = exc_info.value
        assert isinstance(error, StorageError)
        assert error.index == 1
        assert error.url == "https://collides.example"
        assert error.report.created == 1

        urls = {link.url for link in store.export()}
        assert urls == {"https://taken.example", "https://first.example"}
        assert store.stats()["indexed_links"] == 2

    def test_import_malformed_file(self, store, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidInputError):
            import_file(store, path)
        assert store.export() == []

    def test_import_into_memory_store(self, export_file_path):
        with LinkStore(":memory:", config=RlConfig()) as memory:
            assert import_file(memory, export_file_path).created == 3
            assert len(memory.search("github")) == 1
