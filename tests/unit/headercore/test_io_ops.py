"""Tests for headercore.io_ops."""

from __future__ import annotations

import os
import stat

import pytest

from headercore.errors import ArtifactReadError
from headercore.io_ops import atomic_replace, expand_paths, read_artifact, write_artifact


class TestAtomicReplace:
    def test_replaces_content(self, tmp_path):
        path = tmp_path / "a.py"
        path.write_text("old\n", encoding="utf-8")
        write_artifact(path, "new\n")
        assert path.read_text(encoding="utf-8") == "new\n"
        assert [p.name for p in tmp_path.iterdir()] == ["a.py"]

    def test_failure_leaves_original(self, tmp_path):
        path = tmp_path / "a.py"
        path.write_text("old\n", encoding="utf-8")
        with pytest.raises(RuntimeError):
            with atomic_replace(path) as f:
                f.write("partial")
                raise RuntimeError("boom")
        assert path.read_text(encoding="utf-8") == "old\n"
        assert [p.name for p in tmp_path.iterdir()] == ["a.py"]

    def test_interrupt_removes_temp_file(self, tmp_path):
        path = tmp_path / "a.py"
        path.write_text("old\n", encoding="utf-8")
        with pytest.raises(KeyboardInterrupt):
            with atomic_replace(path) as f:
                f.write("partial")
                raise KeyboardInterrupt
        assert [p.name for p in tmp_path.iterdir()] == ["a.py"]

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_mode_preserved(self, tmp_path):
        path = tmp_path / "run.sh"
        path.write_text("echo hi\n", encoding="utf-8")
        path.chmod(0o755)
        write_artifact(path, "echo bye\n")
        assert stat.S_IMODE(path.stat().st_mode) == 0o755

    def test_newline_translation(self, tmp_path):
        path = tmp_path / "a.py"
        write_artifact(path, "a\nb\n", newline="\r\n")
        assert path.read_bytes() == b"a\r\nb\r\n"


class TestReadArtifact:
    def test_crlf_detected_and_normalized(self, tmp_path):
        path = tmp_path / "a.py"
        path.write_bytes(b"a\r\nb\r\n")
        assert read_artifact(path) == ("a\nb\n", "\r\n")

    def test_lf(self, tmp_path):
        path = tmp_path / "a.py"
        path.write_bytes(b"a\nb\n")
        assert read_artifact(path) == ("a\nb\n", "\n")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ArtifactReadError) as exc_info:
            read_artifact(tmp_path / "missing.py")
        assert exc_info.value.path == tmp_path / "missing.py"

    def test_binary_file(self, tmp_path):
        path = tmp_path / "a.py"
        path.write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(ArtifactReadError, match="UTF-8"):
            read_artifact(path)


class TestExpandPaths:
    def test_directories_filtered_and_sorted(self, tmp_path, table):
        for name in ("b.py", "a.md", "c.txt", "node_modules/x.js", ".git/hooks/pre.sh", "jobs/cut.job.py"):
            path = tmp_path / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("x\n", encoding="utf-8")
        result = expand_paths([tmp_path], table)
        assert [p.relative_to(tmp_path).as_posix() for p in result] == [
            "a.md",
            "b.py",
            "jobs/cut.job.py",
        ]

    def test_explicit_files_kept_and_deduplicated(self, tmp_path, table):
        path = tmp_path / "notes.txt"
        path.write_text("x\n", encoding="utf-8")
        result = expand_paths([path, path, tmp_path / "missing.py"], table)
        assert result == [path, tmp_path / "missing.py"]
