"""Tests for slotboard init command (WI_0034)."""

from __future__ import annotations

from pathlib import Path

import yaml
from typer.testing import CliRunner

from conftest import PROJECT_ID, read_documents
from slotboard.cli.main import app

runner = CliRunner()


def _run_init(project_dir: Path, global_config: Path, *extra: str, input_str: str | None = None):
    args = ["init", str(project_dir), "--global-config", str(global_config), *extra]
    return runner.invoke(app, args, input=input_str)


# ---------------------------------------------------------------------------
# Scaffold
# ---------------------------------------------------------------------------


def test_init_creates_database_with_project_document(cli_project: Path) -> None:
    documents = read_documents(cli_project)
    project = documents[f"projects/{PROJECT_ID}"]
    assert set(project["imageMetadata"]) == {"instagram", "fbig", "tiktok"}
    assert project["memberIds"] == ["u1"]


def test_init_creates_slotboard_yaml(cli_project: Path) -> None:
    data = yaml.safe_load((cli_project / "slotboard.yaml").read_text(encoding="utf-8"))
    assert data["project"] == {"id": PROJECT_ID, "instance": "instagram", "actor": "u1"}
    assert data["store"]["db"] == ".slotboard.db"


def test_init_creates_uploads_and_global_config(cli_project: Path, global_config: Path) -> None:
    assert (cli_project / "uploads").is_dir()
    assert global_config.exists()


def test_init_prompts_for_project_id_with_directory_default(tmp_path: Path, global_config: Path) -> None:
    project_dir = tmp_path / "Spring Launch"
    result = _run_init(project_dir, global_config, input_str="\n")
    assert result.exit_code == 0, result.output
    assert "projects/Spring-Launch" in read_documents(project_dir)


def test_init_rejects_invalid_project_id(tmp_path: Path, global_config: Path) -> None:
    result = _run_init(tmp_path / "p", global_config, "--project-id", "has spaces")
    assert result.exit_code == 1
    assert "Invalid project id" in result.output


def test_init_rejects_unknown_instance(tmp_path: Path, global_config: Path) -> None:
    result = _run_init(tmp_path / "p", global_config, "--project-id", "p", "--instance", "myspace")
    assert result.exit_code == 1
    assert "Unknown instance" in result.output


def test_init_updates_existing_gitignore(tmp_path: Path, global_config: Path) -> None:
    project_dir = tmp_path / "p"
    project_dir.mkdir()
    (project_dir / ".gitignore").write_text("node_modules/\n", encoding="utf-8")
    result = _run_init(project_dir, global_config, "--project-id", "p")
    assert result.exit_code == 0, result.output
    content = (project_dir / ".gitignore").read_text(encoding="utf-8")
    assert ".slotboard.db" in content
    assert "uploads/" in content


# ---------------------------------------------------------------------------
# Re-initialisation
# ---------------------------------------------------------------------------


def test_reinit_declined_is_cancelled(cli_project: Path, global_config: Path) -> None:
    result = _run_init(cli_project, global_config, "--project-id", PROJECT_ID, input_str="n\n")
    assert result.exit_code == 0
    assert "Cancelled" in result.output


def test_reinit_keeps_items_and_adds_member(cli_project: Path, global_config: Path) -> None:
    runner.invoke(app, ["add", "--title", "Teaser", "--url", "https://cdn.example/t.jpg", "--dir", str(cli_project)])
    result = _run_init(cli_project, global_config, "--project-id", PROJECT_ID, "--actor", "u2", input_str="y\n")
    assert result.exit_code == 0, result.output
    assert "kept existing" in result.output

    project = read_documents(cli_project)[f"projects/{PROJECT_ID}"]
    assert project["memberIds"] == ["u1", "u2"]
    assert len(project["imageMetadata"]["instagram"]) == 1
