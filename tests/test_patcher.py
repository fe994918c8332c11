"""
Tests for the config patcher — anchored replace, marker blocks, ensure-line.
"""

import os
import stat
from pathlib import Path

import pytest

from src.core.errors import ApplyError, PatchAnchorNotFound
from src.core.services.patcher import (
    anchor_matches,
    append_block,
    ensure_line,
    has_line,
    has_marker,
    line_replaced,
    replace_line,
    write_atomic,
)

ZSHRC = 'export ZSH="$HOME/.oh-my-zsh"\nZSH_THEME="robbyrussell"\nplugins=(git)\nsource $ZSH/oh-my-zsh.sh\n'


# ── Pure helpers ─────────────────────────────────────────────────────


class TestTextHelpers:
    def test_anchor_matches_indexes(self):
        assert anchor_matches(ZSHRC, r"^ZSH_THEME=") == [1]

    def test_anchor_matches_none(self):
        assert anchor_matches(ZSHRC, r"^EDITOR=") == []

    def test_anchor_ignores_line_ending(self):
        assert anchor_matches("a=1\r\nb=2\r\n", r"=1$") == [0]

    def test_anchor_invalid_pattern(self):
        with pytest.raises(ApplyError, match="invalid anchor pattern"):
            anchor_matches(ZSHRC, "plugins=(")

    def test_line_replaced_true(self):
        assert line_replaced(ZSHRC, r"^plugins=", "plugins=(git)")

    def test_line_replaced_false_when_different(self):
        assert not line_replaced(ZSHRC, r"^plugins=", "plugins=(git fzf)")

    def test_line_replaced_missing_file(self):
        assert not line_replaced(None, r"^plugins=", "plugins=(git)")

    def test_line_replaced_ambiguous_is_false(self):
        text = "plugins=(git)\nplugins=(git)\n"
        assert not line_replaced(text, r"^plugins=", "plugins=(git)")

    def test_has_marker(self):
        assert has_marker("x\n# my aliases\n", "# my aliases")
        assert not has_marker("x\n", "# my aliases")
        assert not has_marker(None, "# my aliases")

    def test_has_line_ignores_whitespace(self):
        assert has_line("  [ -f ~/.p10k.zsh ] && source ~/.p10k.zsh  \n", "[ -f ~/.p10k.zsh ] && source ~/.p10k.zsh")

    def test_has_line_needs_whole_line(self):
        assert not has_line("# source ~/.p10k.zsh\n", "source ~/.p10k.zsh")


# ── replace_line ─────────────────────────────────────────────────────


class TestReplaceLine:
    def test_replaces_single_line(self, tmp_path: Path):
        path = tmp_path / ".zshrc"
        path.write_text(ZSHRC)

        changed = replace_line(path, r"^ZSH_THEME=", 'ZSH_THEME="powerlevel10k/powerlevel10k"')

        assert changed
        assert path.read_text() == ZSHRC.replace("robbyrussell", "powerlevel10k/powerlevel10k")

    def test_second_run_changes_nothing(self, tmp_path: Path):
        path = tmp_path / ".zshrc"
        path.write_text(ZSHRC)
        replace_line(path, r"^plugins=", "plugins=(git fzf)")
        before = path.stat().st_mtime_ns

        assert replace_line(path, r"^plugins=", "plugins=(git fzf)") is False
        assert path.stat().st_mtime_ns == before

    def test_no_anchor_raises_and_leaves_file(self, tmp_path: Path):
        path = tmp_path / ".zshrc"
        path.write_text(ZSHRC)

        with pytest.raises(PatchAnchorNotFound):
            replace_line(path, r"^EDITOR=", "EDITOR=vim")
        assert path.read_text() == ZSHRC

    def test_ambiguous_anchor_raises(self, tmp_path: Path):
        path = tmp_path / "cfg"
        path.write_text("x=1\nx=2\n")
        with pytest.raises(ApplyError, match="ambiguous"):
            replace_line(path, r"^x=", "x=3")
        assert path.read_text() == "x=1\nx=2\n"

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ApplyError, match="does not exist"):
            replace_line(tmp_path / "absent", r"^x=", "x=1")

    def test_invalid_pattern_raises(self, tmp_path: Path):
        path = tmp_path / "cfg"
        path.write_text("x=1\n")
        with pytest.raises(ApplyError, match="invalid anchor pattern"):
            replace_line(path, "(", "x=2")
        with pytest.raises(ApplyError, match="invalid anchor pattern"):
            replace_line(tmp_path / "absent", "[", "x=2")
        assert path.read_text() == "x=1\n"

    def test_preserves_crlf_and_other_bytes(self, tmp_path: Path):
        path = tmp_path / "cfg"
        path.write_bytes(b"a=1\r\nb=2\r\nc=3")

        replace_line(path, r"^b=", "b=9")

        assert path.read_bytes() == b"a=1\r\nb=9\r\nc=3"

    def test_keeps_permissions(self, tmp_path: Path):
        path = tmp_path / "secret.conf"
        path.write_text("token=old\n")
        path.chmod(0o600)

        replace_line(path, r"^token=", "token=new")

        assert stat.S_IMODE(path.stat().st_mode) == 0o600


# ── append_block ─────────────────────────────────────────────────────


class TestAppendBlock:
    def test_appends_once(self, tmp_path: Path):
        path = tmp_path / ".zshrc"
        path.write_text(ZSHRC)

        assert append_block(path, "# aliases", "alias ll='ls -la'")
        assert not append_block(path, "# aliases", "alias ll='ls -la'")

        text = path.read_text()
        assert text.count("# aliases") == 1
        assert text.endswith("\n# aliases\nalias ll='ls -la'\n")
        assert text.startswith(ZSHRC)

    def test_creates_missing_file(self, tmp_path: Path):
        path = tmp_path / "new" / "file.conf"
        assert append_block(path, "# m", "x=1")
        assert path.read_text() == "# m\nx=1\n"

    def test_adds_newline_to_unterminated_file(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_text("last line")
        append_block(path, "# m", "x=1\n")
        assert path.read_text() == "last line\n\n# m\nx=1\n"


# ── ensure_line ──────────────────────────────────────────────────────


class TestEnsureLine:
    def test_inserts_when_probe_absent(self, tmp_path: Path):
        path = tmp_path / ".zshrc"
        path.write_text(ZSHRC)
        lines = ["# p10k", "[[ -f ~/.p10k.zsh ]] && source ~/.p10k.zsh"]

        assert ensure_line(path, lines[1], lines)
        assert path.read_text() == ZSHRC + "# p10k\n[[ -f ~/.p10k.zsh ]] && source ~/.p10k.zsh\n"

    def test_no_change_when_probe_present(self, tmp_path: Path):
        path = tmp_path / ".zshrc"
        path.write_text(ZSHRC)
        assert not ensure_line(path, "plugins=(git)", ["plugins=(git)"])
        assert path.read_text() == ZSHRC

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ApplyError):
            ensure_line(tmp_path / "absent", "x", ["x"])


# ── write_atomic ─────────────────────────────────────────────────────


class TestWriteAtomic:
    def test_new_file_mode(self, tmp_path: Path):
        path = tmp_path / "a" / "b.txt"
        write_atomic(path, "hi\n")
        assert path.read_text() == "hi\n"
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_explicit_mode(self, tmp_path: Path):
        path = tmp_path / "run.sh"
        write_atomic(path, "#!/bin/sh\n", mode=0o755)
        assert stat.S_IMODE(path.stat().st_mode) == 0o755

    def test_no_temp_files_left(self, tmp_path: Path):
        path = tmp_path / "f.txt"
        write_atomic(path, "x")
        write_atomic(path, "y")
        assert os.listdir(tmp_path) == ["f.txt"]

    def test_unwritable_parent_raises(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(ApplyError, match="cannot write"):
            write_atomic(blocker / "child.txt", "x")
