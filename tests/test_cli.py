"""Tests for the patchview command-line entry point."""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from patchview import cli


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    log = logging.getLogger("patchview")
    for handler in list(log.handlers):
        handler.close()
        log.removeHandler(handler)


def _run(tmp_path, *args):
    return cli.main(["--log-dir", str(tmp_path / "logs"), *args])


class TestDiffCommand:

    def test_identical_files(self, tmp_path, capsys):
        a = tmp_path / "a.txt"
        a.write_text("x\ny\n", encoding="utf-8")
        assert _run(tmp_path, "diff", str(a), str(a)) == 0
        assert "No changes" in capsys.readouterr().out

    def test_differing_files(self, tmp_path, capsys):
        a = tmp_path / "a.txt"
        b = tmp_path / "b.txt"
        a.write_text("x\ny\n", encoding="utf-8")
        b.write_text("x\nY\n", encoding="utf-8")
        assert _run(tmp_path, "diff", str(a), str(b)) == 1
        out = capsys.readouterr().out
        assert "@@ -2,1 +2,1 @@" in out
        assert "-y" in out and "+Y" in out
        assert "1 change(s)" in out

    def test_missing_file_exits(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("x\n", encoding="utf-8")
        with pytest.raises(SystemExit) as exc:
            _run(tmp_path, "diff", str(a), str(tmp_path / "missing.txt"))
        assert exc.value.code == 2

    def test_log_file_created(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("x\n", encoding="utf-8")
        _run(tmp_path, "diff", str(a), str(a))
        assert list((tmp_path / "logs").iterdir())


class TestClassifyCommand:

    def test_outside_repository_is_external(self, tmp_path, capsys):
        old = tmp_path / "old.txt"
        new = tmp_path / "new.txt"
        old.write_text("a\n", encoding="utf-8")
        new.write_text("b\n", encoding="utf-8")
        with patch("patchview.cli.GitContentProvider.is_git_repo",
                   return_value=(False, None)):
            assert _run(tmp_path, "classify", str(new), "--old", str(old)) == 0
        assert capsys.readouterr().out.strip() == "external"


class TestWatchCommand:

    def test_all_paths_ignored(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".patchview.yaml").write_text(
            "watch:\n  ignore_patterns: ['*.txt']\n", encoding="utf-8"
        )
        target = tmp_path / "a.txt"
        target.write_text("x\n", encoding="utf-8")
        assert _run(tmp_path, "watch", "--no-git", str(target)) == 2

    @patch("patchview.cli.ReviewSession.run")
    @patch("patchview.cli.ReviewSession.start_notifier")
    def test_watch_runs_until_interrupted(self, mock_notifier, mock_run, tmp_path, capsys):
        mock_run.side_effect = KeyboardInterrupt
        target = tmp_path / "a.txt"
        target.write_text("x\n", encoding="utf-8")

        assert _run(tmp_path, "watch", "--no-git", "--mode", "preview", str(target)) == 0

        mock_notifier.assert_called_once()
        out = capsys.readouterr().out
        assert "Watching 1 file(s) in preview mode" in out

    def test_command_required(self, tmp_path):
        with pytest.raises(SystemExit):
            _run(tmp_path)
