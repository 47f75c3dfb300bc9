"""
Integration tests for CLI commands.

Each test gets its own storage folder through KEESHEPHERD_STORAGE_ROOT_DIR.
Values come from an environment variable, so no backend is needed.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from keeshepherd.cli import app

runner = CliRunner()

VALUE = "ABC123XYZ"


@pytest.fixture
def storage(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    root = tmp_path / "storage"
    monkeypatch.setenv("KEESHEPHERD_STORAGE_ROOT_DIR", str(root))
    monkeypatch.setenv("KEESHEPHERD_STORAGE_MACHINE_NAME", "test-box")
    monkeypatch.setenv("KEESHEPHERD_LOGGING_LEVEL", "WARNING")
    monkeypatch.setenv("KS_CLI_SECRET", VALUE)
    return root


@pytest.fixture
def env_file(tmp_path: Path) -> Path:
    path = tmp_path / "project" / "app.env"
    path.parent.mkdir()
    path.write_text(f"API_KEY={VALUE}\n", encoding="utf-8")
    return path


def add_managed(path: Path):
    return runner.invoke(
        app,
        [
            "add", str(path),
            "--name", "api",
            "--start", "8",
            "--end", "17",
            "--managed",
            "--type", "environment",
            "-p", "variable=KS_CLI_SECRET",
        ],
    )


class TestCLIHelp:
    """Test CLI help and usage information."""

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("add", "mask", "stash", "unstash", "stash-all", "resolve", "rotate"):
            assert command in result.stdout

    def test_add_help(self):
        result = runner.invoke(app, ["add", "--help"])

        assert result.exit_code == 0
        assert "--start" in result.stdout
        assert "--managed" in result.stdout


class TestCLIWorkflow:
    """Track, stash, unstash and mask a file end to end."""

    def test_init_creates_storage(self, storage: Path):
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "Storage ready" in result.stdout
        assert (storage / "salt.dat").exists()
        assert (storage / "metadata.db").exists()

    def test_add_stash_unstash_mask(self, storage: Path, env_file: Path):
        result = add_managed(env_file)
        assert result.exit_code == 0, result.stdout
        assert "api was added successfully" in result.stdout

        result = runner.invoke(app, ["stash", str(env_file)])
        assert result.exit_code == 0, result.stdout
        assert "Stashed 1 secret(s)" in result.stdout
        assert env_file.read_text(encoding="utf-8") == "API_KEY=@KeeShepherd(api)\n"

        result = runner.invoke(app, ["unstash", str(env_file)])
        assert result.exit_code == 0, result.stdout
        assert env_file.read_text(encoding="utf-8") == f"API_KEY={VALUE}\n"

        result = runner.invoke(app, ["mask", str(env_file)])
        assert result.exit_code == 0, result.stdout
        assert "API_KEY=*********" in result.stdout
        assert VALUE not in result.stdout

    def test_list_and_locate(self, storage: Path, env_file: Path):
        add_managed(env_file)

        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        assert "api" in result.stdout

        result = runner.invoke(app, ["locate", str(env_file), "api"])
        assert result.exit_code == 0
        assert "line 1, column 9" in result.stdout

    def test_forget_with_yes(self, storage: Path, env_file: Path):
        add_managed(env_file)

        result = runner.invoke(app, ["forget", str(env_file), "--yes"])

        assert result.exit_code == 0
        assert "1 secret(s) have been forgotten" in result.stdout
        assert "No secrets tracked" in runner.invoke(app, ["list"]).stdout

    def test_stash_all_and_declined_unstash_all(self, storage: Path, env_file: Path):
        add_managed(env_file)

        result = runner.invoke(app, ["stash-all", str(env_file.parent), "--yes"])
        assert result.exit_code == 0, result.stdout
        assert env_file.read_text(encoding="utf-8") == "API_KEY=@KeeShepherd(api)\n"

        result = runner.invoke(app, ["unstash-all", str(env_file.parent)], input="n\n")
        assert result.exit_code != 0
        assert env_file.read_text(encoding="utf-8") == "API_KEY=@KeeShepherd(api)\n"

        result = runner.invoke(app, ["unstash-all", str(env_file.parent), "--yes"])
        assert result.exit_code == 0, result.stdout
        assert env_file.read_text(encoding="utf-8") == f"API_KEY={VALUE}\n"

    def test_store_value(self, storage: Path):
        result = runner.invoke(app, ["store-value", "db-password", "--value", "S3cretValue"])

        assert result.exit_code == 0
        stored = json.loads((storage / "secret-storage.json").read_text(encoding="utf-8"))
        assert stored == {"db-password": "S3cretValue"}


class TestCLIErrorHandling:
    """Test CLI error handling for invalid inputs."""

    def test_too_short_secret(self, storage: Path, env_file: Path):
        result = runner.invoke(
            app, ["add", str(env_file), "--name", "tiny", "--start", "8", "--end", "10"]
        )

        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_unknown_secret_type(self, storage: Path, env_file: Path):
        result = runner.invoke(
            app,
            ["add", str(env_file), "-n", "api", "--start", "8", "--end", "17", "--type", "vault9"],
        )

        assert result.exit_code != 0

    def test_malformed_property(self, storage: Path, env_file: Path):
        result = runner.invoke(
            app,
            ["add", str(env_file), "-n", "api", "--start", "8", "--end", "17", "-p", "novalue"],
        )

        assert result.exit_code != 0

    def test_missing_file(self, storage: Path, tmp_path: Path):
        result = runner.invoke(app, ["stash", str(tmp_path / "absent.env")])

        assert result.exit_code != 0

    def test_locate_untracked_secret(self, storage: Path, env_file: Path):
        result = runner.invoke(app, ["locate", str(env_file), "nobody"])

        assert result.exit_code == 1
        assert "Error" in result.stdout
