"""
Tests for configuration loading and the config check use case.
"""

import textwrap
from pathlib import Path

import pytest

from src.core.config.loader import (
    find_config_file,
    load_profile,
    load_request,
    parse_request,
    resolve_request,
)
from src.core.errors import ConfigError
from src.core.use_cases.config_check import check_config

PROFILE = textwrap.dedent("""\
    name: laptop
    description: "Shell and editor"
    settings:
      continue_on_error: true
      step_timeout: 120
    steps:
      - id: packages
        kind: PackagesPresent
        packages: [zsh, git]
      - id: zshrc-theme
        kind: LinePatched
        path: ~/.zshrc
        pattern: '^ZSH_THEME='
        line: 'ZSH_THEME="agnoster"'
""")


def _write(tmp_path: Path, content: str = PROFILE) -> Path:
    path = tmp_path / "provision.yml"
    path.write_text(content)
    return path


# ── Loader Tests ─────────────────────────────────────────────────────


class TestLoadRequest:
    def test_valid_file(self, tmp_path: Path):
        request = load_request(_write(tmp_path))
        assert request.name == "laptop"
        assert request.settings.continue_on_error is True
        assert request.settings.step_timeout == 120
        assert [e.id for e in request.steps] == ["packages", "zshrc-theme"]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_request(tmp_path / "provision.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_request(_write(tmp_path, "name: [unclosed\n"))

    def test_not_a_mapping(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_request(_write(tmp_path, "- just\n- a list\n"))

    def test_schema_error_names_the_field(self, tmp_path: Path):
        content = "name: x\nsteps:\n  - id: s\n    kind: ServiceEnabled\n"
        with pytest.raises(ConfigError, match="service"):
            load_request(_write(tmp_path, content))

    def test_parse_request_source_in_message(self):
        with pytest.raises(ConfigError, match="inline"):
            parse_request({"steps": []}, "inline")


class TestFindConfigFile:
    def test_walks_up(self, tmp_path: Path):
        config = _write(tmp_path)
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == config.resolve()

    def test_not_found(self, tmp_path: Path):
        assert find_config_file(tmp_path) is None


class TestResolveRequest:
    def test_profile_name_wins(self, tmp_path: Path):
        request, source = resolve_request(_write(tmp_path), "zsh")
        assert request.name == "zsh"
        assert source == "built-in:zsh"

    def test_explicit_file(self, tmp_path: Path):
        config = _write(tmp_path)
        request, source = resolve_request(config)
        assert request.name == "laptop"
        assert source == str(config)

    def test_found_file(self, tmp_path: Path, monkeypatch):
        _write(tmp_path)
        monkeypatch.chdir(tmp_path)
        request, _ = resolve_request()
        assert request.name == "laptop"

    def test_default_builtin(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("src.core.config.loader.find_config_file", lambda start_dir=None: None)
        request, source = resolve_request()
        assert request.name == "system"
        assert source == "built-in:system"

    def test_unknown_profile(self):
        with pytest.raises(ConfigError, match="Built-in profiles: system, zsh"):
            load_profile("nope")


# ── Config Check Tests ───────────────────────────────────────────────


class TestConfigCheck:
    def test_valid_profile(self, tmp_path: Path):
        result = check_config(config_path=_write(tmp_path))
        assert result.valid
        assert result.step_counts == {"debian": 2, "suse": 2, "arch": 2, "fedora": 2}
        assert result.errors == []

    def test_builtin_profiles_are_valid(self):
        for name in ("system", "zsh"):
            result = check_config(profile=name)
            assert result.valid, result.errors

    def test_unknown_package_reported_per_family(self, tmp_path: Path):
        content = "name: x\nsteps:\n  - id: p\n    kind: PackagesPresent\n    packages: [tmux]\n"
        result = check_config(config_path=_write(tmp_path, content))
        assert not result.valid
        assert any(e.startswith("[debian]") and "tmux" in e for e in result.errors)

    def test_family_gap_only_on_one_family(self, tmp_path: Path):
        content = textwrap.dedent("""\
            name: x
            steps:
              - id: p
                kind: PackagesPresent
                packages:
                  - name: yay
                    per_family: {arch: [yay]}
        """)
        result = check_config(config_path=_write(tmp_path, content))
        assert not result.valid
        assert not any(e.startswith("[arch]") for e in result.errors)
        assert any(e.startswith("[fedora]") for e in result.errors)

    def test_warns_on_step_planned_nowhere(self, tmp_path: Path):
        content = "name: x\nsteps:\n  - id: ts\n    kind: PackagesPresent\n    packages: [tailscale]\n    only_on: [debian]\n"
        result = check_config(config_path=_write(tmp_path, content))
        assert result.valid
        assert any("'ts' is not planned" in w for w in result.warnings)

    def test_empty_profile_warns(self, tmp_path: Path):
        result = check_config(config_path=_write(tmp_path, "name: empty\n"))
        assert result.valid
        assert any("No steps" in w for w in result.warnings)

    def test_load_error(self, tmp_path: Path):
        result = check_config(config_path=tmp_path / "missing.yml")
        assert not result.valid
        assert result.to_dict()["profile"] is None
