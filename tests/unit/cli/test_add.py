"""Tests for slotboard add command (WI_0040)."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from conftest import read_documents, read_partition
from slotboard.cli.main import app

runner = CliRunner()


def _add(project_dir: Path, *args: str):
    return runner.invoke(app, ["add", "--dir", str(project_dir), *args])


def test_add_url_goes_to_pool(cli_project: Path) -> None:
    result = _add(cli_project, "--title", "Teaser", "--url", "https://cdn.example/t.jpg", "--caption", "Soon")
    assert result.exit_code == 0, result.output
    assert "Added" in result.output

    (entry,) = read_partition(cli_project).values()
    assert entry["title"] == "Teaser"
    assert entry["location"] == "pool"
    assert entry["caption"] == "Soon"
    assert entry["url"] == "https://cdn.example/t.jpg"
    assert entry["instance"] == "instagram"


def test_add_file_uploads_into_project(cli_project: Path, tmp_path: Path) -> None:
    media = tmp_path / "clip.mp4"
    media.write_bytes(b"video")
    result = _add(cli_project, "--title", "Clip", "--file", str(media))
    assert result.exit_code == 0, result.output

    (entry,) = read_partition(cli_project).values()
    assert entry["url"].startswith("file://")
    assert len(list((cli_project / "uploads").iterdir())) == 1


def test_add_with_date_schedules_directly(cli_project: Path) -> None:
    result = _add(cli_project, "--title", "Launch", "--url", "https://cdn.example/l.jpg", "--date", "2024-03-14")
    assert result.exit_code == 0, result.output
    assert "March 14, 2024" in result.output
    (entry,) = read_partition(cli_project).values()
    assert entry["location"] == "2024-2-14"


def test_add_draft_sets_label(cli_project: Path) -> None:
    _add(cli_project, "--title", "Idea", "--url", "https://cdn.example/i.jpg", "--draft")
    (entry,) = read_partition(cli_project).values()
    assert entry["label"] == "Draft"


def test_add_to_other_instance(cli_project: Path) -> None:
    result = _add(cli_project, "--title", "Reel", "--url", "https://cdn.example/r.mp4", "--instance", "facebook")
    assert result.exit_code == 0, result.output
    assert read_partition(cli_project) == {}
    assert len(read_partition(cli_project, "fbig")) == 1


def test_add_records_activity(cli_project: Path) -> None:
    _add(cli_project, "--title", "Teaser", "--url", "https://cdn.example/t.jpg")
    (item_id,) = read_partition(cli_project)
    (activity,) = read_documents(cli_project, f"images/{item_id}/activities/").values()
    assert activity["action"] == "added the card"
    assert activity["userId"] == "u1"


def test_add_into_full_day_fails(cli_project: Path) -> None:
    for n in range(4):
        result = _add(cli_project, "--title", f"Card {n}", "--url", f"https://cdn.example/{n}.jpg", "--date", "2024-03-14")
        assert result.exit_code == 0, result.output

    result = _add(cli_project, "--title", "Extra", "--url", "https://cdn.example/x.jpg", "--date", "2024-03-14")
    assert result.exit_code == 1
    assert "already has 4 cards" in result.output
    assert len(read_partition(cli_project)) == 4


def test_add_requires_media(cli_project: Path) -> None:
    result = _add(cli_project, "--title", "Nothing")
    assert result.exit_code == 1
    assert "No media given" in result.output


def test_add_missing_file(cli_project: Path, tmp_path: Path) -> None:
    result = _add(cli_project, "--title", "Ghost", "--file", str(tmp_path / "missing.png"))
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_add_invalid_date(cli_project: Path) -> None:
    result = _add(cli_project, "--title", "Bad", "--url", "https://cdn.example/b.jpg", "--date", "2024-02-30")
    assert result.exit_code == 1
    assert "Invalid target" in result.output
