"""Tests for CLI commands - sources, jobs and conflicts."""

import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from recordsync.cli import cli


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> CliRunner:
    """Create a CLI test runner using a temporary database."""
    monkeypatch.setenv("RECORDSYNC_DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.delenv("RECORDSYNC_INTERNAL_DB_URL", raising=False)
    monkeypatch.delenv("RECORDSYNC_LOG_LEVEL", raising=False)
    return CliRunner()


def write_json(path: Path, data: Any) -> str:
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


@pytest.fixture
def file_sources(runner: CliRunner, tmp_path: Path) -> tuple[Path, Path]:
    """Register two file sources: "shop_files" and "erp_files"."""
    shop_dir, erp_dir = tmp_path / "shop", tmp_path / "erp"
    shop_dir.mkdir()
    erp_dir.mkdir()
    for source_id, directory in (("shop_files", shop_dir), ("erp_files", erp_dir)):
        descriptor = write_json(
            tmp_path / f"{source_id}.json",
            {"id": source_id, "type": "file", "connection": {"path": str(directory)}},
        )
        result = runner.invoke(cli, ["sources", "add", descriptor])
        assert result.exit_code == 0, result.output
    return shop_dir, erp_dir


def create_job(runner: CliRunner, tmp_path: Path, **changes: Any) -> str:
    job = {
        "name": "Shop to ERP",
        "source_system": "shop_files",
        "target_system": "erp_files",
        "data_type": "products",
        "frequency_minutes": 15,
        "config": {
            "mapping": [
                {"source_field": "id", "target_field": "id"},
                {"source_field": "price", "target_field": "price", "transformation": "currency_format"},
            ],
            "validation": [{"field": "price", "type": "range", "rule": "0-1000"}],
        },
    }
    job.update(changes)
    result = runner.invoke(cli, ["jobs", "create", write_json(tmp_path / "job.json", job)])
    assert result.exit_code == 0, result.output
    return result.output.strip().rsplit(" ", 1)[-1]


class TestSourceCommands:
    """Tests for 'recordsync sources' commands."""

    def test_list_empty(self, runner: CliRunner) -> None:
        """Listing without sources says so."""
        result = runner.invoke(cli, ["sources", "list"])
        assert result.exit_code == 0
        assert "No data sources registered." in result.output

    def test_add_and_list(self, runner: CliRunner, file_sources: tuple[Path, Path]) -> None:
        """Added sources are listed."""
        result = runner.invoke(cli, ["sources", "list"])
        assert result.exit_code == 0
        assert "shop_files" in result.output
        assert "erp_files" in result.output

    def test_add_invalid(self, runner: CliRunner, tmp_path: Path) -> None:
        """Invalid descriptors exit with status 1."""
        descriptor = write_json(tmp_path / "bad.json", {"id": "x", "type": "ftp"})
        result = runner.invoke(cli, ["sources", "add", descriptor])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_add_not_json(self, runner: CliRunner, tmp_path: Path) -> None:
        """Unreadable files exit with status 1."""
        path = tmp_path / "bad.json"
        path.write_text("{nope", encoding="utf-8")
        result = runner.invoke(cli, ["sources", "add", str(path)])
        assert result.exit_code == 1


class TestJobCommands:
    """Tests for 'recordsync jobs' commands."""

    def test_create_and_list(
        self, runner: CliRunner, file_sources: tuple[Path, Path], tmp_path: Path
    ) -> None:
        """Created jobs are listed."""
        job_id = create_job(runner, tmp_path)

        result = runner.invoke(cli, ["jobs", "list"])

        assert result.exit_code == 0
        assert job_id in result.output
        assert "every 15m" in result.output

    def test_create_missing_fields(self, runner: CliRunner, tmp_path: Path) -> None:
        """Job files must name every required field."""
        path = write_json(tmp_path / "job.json", {"name": "x"})
        result = runner.invoke(cli, ["jobs", "create", path])
        assert result.exit_code == 1
        assert "source_system" in result.output

    def test_create_unknown_source(self, runner: CliRunner, tmp_path: Path) -> None:
        """Jobs over unknown sources are rejected."""
        job = {
            "name": "x",
            "source_system": "a",
            "target_system": "b",
            "data_type": "products",
            "frequency_minutes": 5,
        }
        result = runner.invoke(cli, ["jobs", "create", write_json(tmp_path / "job.json", job)])
        assert result.exit_code == 1

    def test_run_success(
        self, runner: CliRunner, file_sources: tuple[Path, Path], tmp_path: Path
    ) -> None:
        """A run copies the records and prints the result."""
        shop_dir, erp_dir = file_sources
        (shop_dir / "products.jsonl").write_text(
            '{"id": 1, "price": 19.999}\n{"id": 2, "price": 5}\n', encoding="utf-8"
        )
        job_id = create_job(runner, tmp_path)

        result = runner.invoke(cli, ["jobs", "run", job_id])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["status"] == "success"
        assert data["records_success"] == 2
        lines = (erp_dir / "products.jsonl").read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[0]) == {"id": 1, "price": 20.0}

    def test_run_with_record_errors(
        self, runner: CliRunner, file_sources: tuple[Path, Path], tmp_path: Path
    ) -> None:
        """Runs with failed records exit with status 2."""
        shop_dir, _ = file_sources
        (shop_dir / "products.jsonl").write_text(
            '{"id": 1, "price": 10}\n{"id": 2, "price": 5000}\n', encoding="utf-8"
        )
        job_id = create_job(runner, tmp_path)

        result = runner.invoke(cli, ["jobs", "run", job_id])

        assert result.exit_code == 2
        assert json.loads(result.output)["status"] == "partial"

    def test_run_system_failure(
        self, runner: CliRunner, file_sources: tuple[Path, Path], tmp_path: Path
    ) -> None:
        """Unreadable sources exit with status 1 and print the stored result."""
        shop_dir, _ = file_sources
        (shop_dir / "products.jsonl").write_text("{broken\n", encoding="utf-8")
        job_id = create_job(runner, tmp_path)

        result = runner.invoke(cli, ["jobs", "run", job_id])

        assert result.exit_code == 1
        assert '"SYNC_FAILED"' in result.output

    def test_run_unknown_job(self, runner: CliRunner) -> None:
        """Unknown jobs exit with status 1."""
        result = runner.invoke(cli, ["jobs", "run", "missing"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_status_and_deactivate(
        self, runner: CliRunner, file_sources: tuple[Path, Path], tmp_path: Path
    ) -> None:
        """Status prints JSON; deactivated jobs report inactive."""
        job_id = create_job(runner, tmp_path)
        runner.invoke(cli, ["jobs", "run", job_id])

        result = runner.invoke(cli, ["jobs", "deactivate", job_id])
        assert result.exit_code == 0

        result = runner.invoke(cli, ["jobs", "status", job_id])
        assert result.exit_code == 0
        status = json.loads(result.output)
        assert status["job"]["is_active"] is False
        assert len(status["recent_results"]) == 1

    def test_db_path_option(
        self, runner: CliRunner, file_sources: tuple[Path, Path], tmp_path: Path
    ) -> None:
        """--db-path points the command at another database."""
        result = runner.invoke(cli, ["sources", "list", "--db-path", str(tmp_path / "other.db")])
        assert result.exit_code == 0
        assert "No data sources registered." in result.output


class TestConflictCommands:
    """Tests for 'recordsync conflicts' commands."""

    def test_list_and_resolve(
        self, runner: CliRunner, file_sources: tuple[Path, Path], tmp_path: Path
    ) -> None:
        """Conflicts found by a run can be listed and resolved."""
        shop_dir, erp_dir = file_sources
        (shop_dir / "products.jsonl").write_text('{"id": 1, "price": 12}\n', encoding="utf-8")
        (erp_dir / "products.jsonl").write_text('{"id": 1, "price": 10}\n', encoding="utf-8")
        job_id = create_job(runner, tmp_path)
        runner.invoke(cli, ["jobs", "run", job_id])

        result = runner.invoke(cli, ["conflicts", "list", job_id, "--unresolved"])
        assert result.exit_code == 0
        assert "#1" in result.output
        assert "price" in result.output

        result = runner.invoke(cli, ["conflicts", "resolve", "1", "source_wins"])
        assert result.exit_code == 0

        result = runner.invoke(cli, ["conflicts", "list", job_id, "--unresolved"])
        assert "No conflicts." in result.output

    def test_resolve_unknown(self, runner: CliRunner) -> None:
        """Unknown conflict ids exit with status 1."""
        result = runner.invoke(cli, ["conflicts", "resolve", "99", "manual"])
        assert result.exit_code == 1
