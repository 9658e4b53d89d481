from __future__ import annotations

import json

import pytest

from sonarmodel import scanner
from sonarmodel.cli import ENV_PARAMS, EXIT_ANALYSIS_ERROR, environment_overrides, main
from sonarmodel.errors import AnalysisError


@pytest.fixture
def snapshot_file(write_json, tmp_path):
    (tmp_path / "root" / "src" / "main" / "java").mkdir(parents=True)
    return write_json(
        {
            "modules": [
                {
                    "path": ":",
                    "project_dir": "root",
                    "group": "org.example",
                    "plugins": ["java"],
                    "source_sets": [{"name": "main", "source_dirs": ["src/main/java"]}],
                }
            ]
        }
    )


def _lines(text: str) -> list[str]:
    return text.splitlines()


# -----------------------------------------------------------------------------
# Environment
# -----------------------------------------------------------------------------
def test_environment_overrides():
    environ = {ENV_PARAMS: json.dumps({"sonar.host.url": "http://sq", "sonar.verbose": True})}
    assert environment_overrides(environ) == {"sonar.host.url": "http://sq", "sonar.verbose": "True"}
    assert environment_overrides({}) == {}


@pytest.mark.parametrize("raw", ["{broken", "[1, 2]"])
def test_environment_overrides_rejects_bad_values(raw):
    with pytest.raises(AnalysisError):
        environment_overrides({ENV_PARAMS: raw})


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------
def test_dry_run_prints_properties(snapshot_file, capsys, monkeypatch):
    """--dry-run writes the sorted map to stdout and applies -D last."""
    monkeypatch.delenv(ENV_PARAMS, raising=False)
    assert main([str(snapshot_file), "--dry-run", "-Dsonar.exclusions=**/gen/**"]) == 0
    lines = _lines(capsys.readouterr().out)
    assert "sonar.projectKey=org.example:root" in lines
    assert "sonar.exclusions=**/gen/**" in lines
    keys = [line.partition("=")[0] for line in lines]
    assert keys == sorted(keys)


def test_command_line_beats_environment(snapshot_file, capsys, monkeypatch):
    monkeypatch.setenv(ENV_PARAMS, json.dumps({"sonar.projectKey": "from-env", "sonar.token": "t"}))
    assert main([str(snapshot_file), "--dry-run", "-Dsonar.projectKey=from-cli"]) == 0
    lines = _lines(capsys.readouterr().out)
    assert "sonar.projectKey=from-cli" in lines
    assert "sonar.token=t" in lines


def test_dump_json(snapshot_file, tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_PARAMS, raising=False)
    target = tmp_path / "out" / "properties.json"
    assert main([str(snapshot_file), "--dump", str(target), "--format", "json", "-v"]) == 0
    properties = json.loads(target.read_text(encoding="utf-8"))
    assert properties["sonar.projectName"] == "root"
    assert properties["sonar.verbose"] == "true"


def test_analysis_error_exit_code(tmp_path, caplog):
    """Load and resolution failures exit with the analysis error status."""
    assert main([str(tmp_path / "missing.json"), "--dry-run"]) == EXIT_ANALYSIS_ERROR
    assert "neither a snapshot file" in caplog.text


def test_scanner_option_runs_given_command(snapshot_file, monkeypatch):
    """--scanner replaces the scanner command line."""
    monkeypatch.delenv(ENV_PARAMS, raising=False)
    calls = []

    def fake_run(cmd, cwd=None):
        calls.append(cmd)
        return scanner.subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr(scanner.subprocess, "run", fake_run)
    assert main([str(snapshot_file), "--scanner", "/opt/sonar-scanner -X"]) == 0
    (cmd,) = calls
    assert cmd[:2] == ["/opt/sonar-scanner", "-X"]
    assert cmd[2].startswith("-Dproject.settings=")
    assert cmd[2].endswith("sonar-project.properties")


def test_bad_define_is_a_usage_error(snapshot_file):
    with pytest.raises(SystemExit):
        main([str(snapshot_file), "-Dnovalue"])
