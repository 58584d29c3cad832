"""Tests for the export orchestrator."""

import pytest

from djournal.errors import NotFoundError, ValidationError
from djournal.export import build_filename, write_artifact
from djournal.models import MARKDOWN, PDF, ExportArtifact

USER = "alice"


class TestExportDay:
    """Single-day exports."""

    def test_today_archives_first(self, engine, identity):
        engine.days.add_entry(USER, "exported")

        artifact = engine.exports.export_day(identity)

        assert engine.snapshots.list_dates(USER) == ["2024-01-10"]
        assert artifact.filename == "2024-01-10.md"
        assert artifact.content_type == "text/markdown; charset=utf-8"
        assert artifact.dates == ["2024-01-10"]
        text = artifact.content.decode("utf-8")
        assert 'user: "Alice"' in text
        assert "exported" in text

    def test_today_as_pdf(self, engine, identity):
        artifact = engine.exports.export_day(identity, "today", PDF)
        assert artifact.filename == "2024-01-10.pdf"
        assert artifact.content_type == "application/pdf"
        assert artifact.content.startswith(b"%PDF-")
        assert artifact.content_disposition == 'attachment; filename="2024-01-10.pdf"'

    def test_past_day(self, engine, identity, archive_days):
        archive_days(["2024-01-07"])
        artifact = engine.exports.export_day(identity, "2024-01-07")
        assert artifact.filename == "2024-01-07.md"
        assert "entry on 2024-01-07" in artifact.content.decode("utf-8")

    def test_missing_day(self, engine, identity):
        with pytest.raises(NotFoundError):
            engine.exports.export_day(identity, "2023-05-05")

    def test_bad_date(self, engine, identity):
        with pytest.raises(ValidationError):
            engine.exports.export_day(identity, "yesterday")

    def test_bad_format(self, engine, identity):
        with pytest.raises(ValidationError):
            engine.exports.export_day(identity, "today", "docx")

    def test_profile_included(self, engine, identity):
        engine.set_profile_field(USER, "city", "Oslo")
        text = engine.exports.export_day(identity).content.decode("utf-8")
        assert 'city: "Oslo"' in text


class TestExportRange:
    """Multi-day exports."""

    def test_range_selects_inclusive_ascending(self, engine, identity, archive_days):
        archive_days(["2024-01-05", "2024-01-07", "2024-01-10"])

        artifact = engine.exports.export_range(identity, "2024-01-06", "2024-01-10")

        assert artifact.dates == ["2024-01-07", "2024-01-10"]
        assert artifact.filename == "2024-01-06_to_2024-01-10.md"
        text = artifact.content.decode("utf-8")
        assert text.index("entry on 2024-01-07") < text.index("entry on 2024-01-10")
        assert "entry on 2024-01-05" not in text

    def test_single_match_uses_that_date(self, engine, identity, archive_days):
        archive_days(["2024-01-07"])
        artifact = engine.exports.export_range(identity, "2024-01-01", "2024-01-08", PDF)
        assert artifact.filename == "2024-01-07.pdf"

    def test_empty_range(self, engine, identity, archive_days):
        archive_days(["2024-01-05"])
        with pytest.raises(NotFoundError):
            engine.exports.export_range(identity, "2024-02-01", "2024-02-10")

    @pytest.mark.parametrize("start,end", [(None, "2024-01-10"), ("2024-01-01", ""), ("01/01/2024", "2024-01-10")])
    def test_bounds_required(self, engine, identity, start, end):
        with pytest.raises(ValidationError):
            engine.exports.export_range(identity, start, end)

    def test_range_data(self, engine, identity, archive_days):
        archive_days(["2024-01-05", "2024-01-07"])
        days = engine.exports.range_data(identity, "2024-01-01", "2024-01-31")
        assert [d["date"] for d in days] == ["2024-01-05", "2024-01-07"]
        assert days[0]["data"]["entries"][0]["text"] == "entry on 2024-01-05"

    def test_range_data_empty_is_not_an_error(self, engine, identity):
        assert engine.exports.range_data(identity, "2024-01-01", "2024-01-31") == []

    def test_yesterday_is_archived_before_selection(self, engine, clock, identity):
        """A range read on a new day includes the day that just ended."""
        engine.days.add_entry(USER, "late night")
        clock.advance(days=1)

        artifact = engine.exports.export_range(identity, "2024-01-10", "2024-01-10")

        assert artifact.dates == ["2024-01-10"]
        assert "late night" in artifact.content.decode("utf-8")
        assert [d["date"] for d in engine.exports.range_data(identity, "2024-01-01", "2024-01-31")] == ["2024-01-10"]


class TestFilenames:
    def test_single(self):
        assert build_filename(["2024-01-07"], MARKDOWN) == "2024-01-07.md"

    def test_span(self):
        assert build_filename(["2024-01-07", "2024-01-09"], PDF, "2024-01-01", "2024-01-31") == (
            "2024-01-01_to_2024-01-31.pdf"
        )


class TestWriteArtifact:
    def test_writes_file(self, temp_root):
        artifact = ExportArtifact(filename="2024-01-07.md", content_type="text/markdown", content=b"hi")
        path = write_artifact(artifact, temp_root / "exports")
        assert path == temp_root / "exports" / "2024-01-07.md"
        assert path.read_bytes() == b"hi"
        assert not (temp_root / "exports" / "2024-01-07.md.tmp").exists()

    def test_overwrites(self, temp_root):
        write_artifact(ExportArtifact("a.md", "text/markdown", b"old"), temp_root)
        path = write_artifact(ExportArtifact("a.md", "text/markdown", b"new"), temp_root)
        assert path.read_bytes() == b"new"
