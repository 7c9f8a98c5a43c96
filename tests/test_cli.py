"""
Tests for the Command-Line Interface
"""

import json

import pytest

from esh_optimizer.cli import main


class TestCLI:
    """Test the list and solve commands."""

    def test_list(self, capsys):
        """Every built-in problem is listed."""
        assert main(['list']) == 0
        out = capsys.readouterr().out
        assert "convex_circle" in out
        assert "bilinear" in out

    def test_unknown_problem(self, capsys):
        """Unknown names fail with the list of choices."""
        assert main(['solve', 'no_such_problem']) == 1
        assert "Unknown problem" in capsys.readouterr().out

    def test_solve_json(self, capsys):
        """JSON output carries the result and the known optimum."""
        assert main(['solve', 'convex_circle', '--json', '--iteration-limit', '50']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["problem"] == "convex_circle"
        assert data["primal_bound"] == pytest.approx(data["known_optimum"], abs=1e-2)

    def test_invalid_settings_file(self, tmp_path, capsys):
        """Settings files with unknown keys are rejected."""
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"Dual.NoSuchSetting": 1}))
        assert main(['solve', 'convex_circle', '--settings', str(path)]) == 1
        assert "invalid settings" in capsys.readouterr().out

    def test_no_command(self, capsys):
        """Without a command the help is printed."""
        assert main([]) == 0
        assert "esh-optimizer" in capsys.readouterr().out
