"""Tests for the deptree command line."""

import json
import logging
import shutil
from pathlib import Path

import pytest
from unittest.mock import patch

from deptree.__main__ import main, setup_logging
from deptree.models import DependencyTree

RESOURCES = Path(__file__).parent / "resources"
GRADLE = RESOURCES / "gradle"


class TestBuildCommand:
    """Tests for 'deptree build'."""

    def test_build_tree_to_stdout(self, capsys):
        code = main(["build", str(GRADLE / "empty.json"), "--root-path", "/projects/example"])

        assert code == 0
        assert capsys.readouterr().out == "empty\n"

    def test_build_multi_module_json(self, tmp_path, capsys):
        output = tmp_path / "tree.json"
        code = main([
            "build", str(GRADLE / "api.json"), str(GRADLE / "empty.json"),
            "--root-path", str(tmp_path), "--format", "json", "--output", str(output),
        ])

        assert code == 0
        assert "Output written to" in capsys.readouterr().out
        with open(output) as f:
            data = json.load(f)
        assert data['name'] == tmp_path.name
        assert [child['name'] for child in data['children']] == ["api", "empty"]

    def test_build_malformed_file(self, capsys):
        code = main(["build", str(GRADLE / "malformed.json")])

        assert code == 1
        assert "malformed.json" in capsys.readouterr().err

    def test_build_missing_file(self, tmp_path, capsys):
        code = main(["build", str(tmp_path / "missing.json")])

        assert code == 1
        assert "Error building dependency tree" in capsys.readouterr().err

    def test_depth_limit(self, capsys):
        code = main(["build", str(GRADLE / "api.json"), "--max-depth", "1"])

        assert code == 1
        assert "deeper than 1 levels" in capsys.readouterr().err


class TestStatsCommand:
    """Tests for 'deptree stats'."""

    def test_stats(self, capsys):
        code = main(["stats", str(GRADLE / "api.json")])

        out = capsys.readouterr().out
        assert code == 0
        assert "Total Nodes: 7" in out
        assert "Unresolved: 1" in out
        assert "testCompileClasspath: 2" in out


class TestScanCommand:
    """Tests for 'deptree scan'."""

    def test_scan_detects_tool(self, tmp_path, capsys):
        (tmp_path / "build.gradle").write_text("")
        tree = DependencyTree(name="app")

        with patch('deptree.__main__.TreeScanner') as mock_scanner:
            mock_scanner.return_value.build_tree.return_value = tree
            code = main(["scan", str(tmp_path)])

        assert code == 0
        assert capsys.readouterr().out == "app\n"
        driver = mock_scanner.call_args[0][1]
        assert driver.pkg_type == "gradle"

    def test_scan_tool_not_installed(self, tmp_path, capsys):
        shutil.copy(RESOURCES / "npm" / "dev-and-prod-package.json", tmp_path / "package.json")

        with patch('deptree.drivers.shutil.which', return_value=None):
            code = main(["scan", str(tmp_path)])

        assert code == 1
        assert "npm is not installed" in capsys.readouterr().err

    def test_scan_unknown_project(self, tmp_path, capsys):
        code = main(["scan", str(tmp_path)])

        assert code == 1
        assert "Could not detect the build tool" in capsys.readouterr().err

    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_scan_with_init_script(self, tmp_path, capsys):
        (tmp_path / "build.gradle").write_text("")
        init_script = tmp_path / "init.gradle"

        with patch('deptree.__main__.TreeScanner') as mock_scanner:
            mock_scanner.return_value.build_tree.return_value = DependencyTree(name="app")
            code = main(["scan", str(tmp_path), "--init-script", str(init_script)])

        assert code == 0
        driver = mock_scanner.call_args[0][1]
        assert driver.init_script == str(init_script)

    def test_init_script_rejected_for_npm(self, tmp_path, capsys):
        (tmp_path / "package.json").write_text("{}")

        code = main(["scan", str(tmp_path), "--init-script", "init.gradle"])

        assert code == 1
        assert "Init scripts are not supported by npm" in capsys.readouterr().err


class TestLogging:
    """Tests for log level selection."""

    @pytest.mark.parametrize("name, level", [
        ("TRACE", logging.DEBUG),
        ("DEBUG", logging.DEBUG),
        ("WARN", logging.WARNING),
        ("ERROR", logging.ERROR),
    ])
    def test_loglevel(self, name, level):
        with patch('deptree.__main__.logging.basicConfig') as mock_config:
            setup_logging(log_level=name)

        assert mock_config.call_args[1]['level'] == level

    def test_verbose(self):
        with patch('deptree.__main__.logging.basicConfig') as mock_config:
            setup_logging(verbose=True)

        assert mock_config.call_args[1]['level'] == logging.INFO
