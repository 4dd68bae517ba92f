"""
Tests for the configuration loader — deskboot.yml parsing and option merging.
"""

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from deskboot.core.config.loader import find_config_file, load_config, resolve_options
from deskboot.core.errors import ConfigError
from deskboot.core.models.options import DEFAULT_DOTFILES_DIR, BootstrapConfig


def _write(path: Path, content: str) -> Path:
    path.write_text(textwrap.dedent(content))
    return path


class TestFindConfig:
    def test_in_current_dir(self, tmp_path: Path):
        (tmp_path / "deskboot.yml").write_text("theme: gruvbox\n")
        assert find_config_file(tmp_path) == tmp_path / "deskboot.yml"

    def test_walks_up(self, tmp_path: Path):
        (tmp_path / "deskboot.yml").write_text("{}\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == tmp_path / "deskboot.yml"

    def test_not_found(self, tmp_path: Path):
        assert find_config_file(tmp_path) is None


class TestLoadConfig:
    def test_full_file(self, tmp_path: Path):
        path = _write(tmp_path / "deskboot.yml", """\
            theme: kanagawa
            full_install: false
            aur_helper: paru
            build_root: ~/src
            retry:
              attempts: 5
              delay: 1
            extra_packages: [htop, btop]
        """)
        config = load_config(path)
        assert config.theme == "kanagawa"
        assert config.full_install is False
        assert config.aur_helper == "paru"
        assert config.retry.attempts == 5
        assert config.retry.increment == 3.0
        assert config.extra_packages == ["htop", "btop"]

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "deskboot.yml"
        path.write_text("")
        assert load_config(path) == BootstrapConfig()

    def test_no_file_gives_defaults(self):
        assert load_config(search=False) == BootstrapConfig()

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = _write(tmp_path / "deskboot.yml", "theme: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = _write(tmp_path / "deskboot.yml", "- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_unknown_key_rejected(self, tmp_path: Path):
        path = _write(tmp_path / "deskboot.yml", "colour_scheme: dark\n")
        with pytest.raises(ConfigError, match="colour_scheme"):
            load_config(path)

    def test_bad_helper_rejected(self, tmp_path: Path):
        path = _write(tmp_path / "deskboot.yml", "aur_helper: pikaur\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_retry_attempts_must_be_positive(self, tmp_path: Path):
        path = _write(tmp_path / "deskboot.yml", "retry:\n  attempts: 0\n")
        with pytest.raises(ConfigError):
            load_config(path)


class TestResolveOptions:
    def test_defaults(self, fake_home: Path):
        options = resolve_options(home=fake_home)
        assert options.theme == "tokyonight"
        assert options.full_install
        assert options.build_root == fake_home / ".cache" / "deskboot" / "src"
        assert options.backup_root == fake_home
        assert options.dotfiles_dir == DEFAULT_DOTFILES_DIR
        assert options.wayfire_prefix == Path("/opt/wayfire")

    def test_cli_overrides_file(self, fake_home: Path):
        config = BootstrapConfig(theme="kanagawa", skip_wallpapers=False)
        options = resolve_options(config, home=fake_home, theme="gruvbox", skip_wallpapers=True)
        assert options.theme == "gruvbox"
        assert options.skip_wallpapers
        assert not options.install_wallpapers

    def test_unset_flags_keep_file_values(self, fake_home: Path):
        config = BootstrapConfig(theme="kanagawa", full_install=False)
        options = resolve_options(config, home=fake_home, theme=None, full_install=None)
        assert options.theme == "kanagawa"
        assert not options.full_install

    def test_paths_expanded(self, fake_home: Path, monkeypatch):
        monkeypatch.setenv("HOME", str(fake_home))
        config = BootstrapConfig(backup_root="~/backups", build_root="/var/tmp/build")
        options = resolve_options(config, home=fake_home)
        assert options.backup_root == fake_home / "backups"
        assert options.build_root == Path("/var/tmp/build")

    def test_fallback_prefix(self, fake_home: Path):
        options = resolve_options(home=fake_home, fallback_desktop=True)
        assert options.wayfire_prefix == Path("/usr")

    def test_options_are_immutable(self, fake_home: Path):
        options = resolve_options(home=fake_home)
        with pytest.raises(ValidationError):
            options.theme = "gruvbox"

    def test_invalid_override(self, fake_home: Path):
        with pytest.raises(ConfigError):
            resolve_options(home=fake_home, aur_helper="pikaur")
