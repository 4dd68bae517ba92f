"""
Options models — the configuration file schema and the resolved run options.

``BootstrapConfig`` mirrors ``deskboot.yml``.  ``PlanOptions`` is what a
Plan is built from: the file values merged with CLI flags and with every
path resolved against the user's home directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_THEME = "tokyonight"
DEFAULT_WALLPAPERS_REPO = "https://github.com/dharmx/walls"
DEFAULT_DOTFILES_DIR = Path(__file__).resolve().parents[2] / "data" / "dotfiles"


class RetrySettings(BaseModel):
    """Bounded additive backoff for retryable steps."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    attempts: int = Field(default=3, ge=1)
    delay: float = Field(default=2.0, ge=0)
    increment: float = Field(default=3.0, ge=0)


class BootstrapConfig(BaseModel):
    """Schema of ``deskboot.yml``.  Every key is optional."""

    model_config = ConfigDict(extra="forbid")

    theme: str = DEFAULT_THEME
    full_install: bool = True
    skip_wallpapers: bool = False
    fallback_desktop: bool = False
    aur_helper: Literal["yay", "paru"] = "yay"

    build_root: str | None = None
    backup_root: str | None = None
    dotfiles_dir: str | None = None

    command_timeout: float = Field(default=600.0, gt=0)
    build_timeout: float = Field(default=3600.0, gt=0)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    extra_packages: list[str] = Field(default_factory=list)
    extra_aur_packages: list[str] = Field(default_factory=list)
    wallpapers_repo: str = DEFAULT_WALLPAPERS_REPO


class PlanOptions(BaseModel):
    """Resolved configuration for one run (immutable)."""

    model_config = ConfigDict(frozen=True)

    # ── Selection ────────────────────────────────────────────────
    theme: str = DEFAULT_THEME
    full_install: bool = True
    skip_wallpapers: bool = False
    fallback_desktop: bool = False
    aur_helper: Literal["yay", "paru"] = "yay"

    # ── Run mode ─────────────────────────────────────────────────
    dry_run: bool = False
    auto_yes: bool = False

    # ── Paths ────────────────────────────────────────────────────
    home: Path
    build_root: Path
    backup_root: Path
    dotfiles_dir: Path

    # ── Tunables ─────────────────────────────────────────────────
    command_timeout: float = 600.0
    build_timeout: float = 3600.0
    retry: RetrySettings = Field(default_factory=RetrySettings)
    extra_packages: tuple[str, ...] = ()
    extra_aur_packages: tuple[str, ...] = ()
    wallpapers_repo: str = DEFAULT_WALLPAPERS_REPO

    @model_validator(mode="before")
    @classmethod
    def _default_paths(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        home = Path(data.get("home") or Path.home())
        data["home"] = home
        if data.get("build_root") is None:
            data["build_root"] = home / ".cache" / "deskboot" / "src"
        if data.get("backup_root") is None:
            data["backup_root"] = home
        if data.get("dotfiles_dir") is None:
            data["dotfiles_dir"] = DEFAULT_DOTFILES_DIR
        return data

    @property
    def install_wallpapers(self) -> bool:
        return self.full_install and not self.skip_wallpapers

    @property
    def config_dir(self) -> Path:
        return self.home / ".config"

    @property
    def wayfire_prefix(self) -> Path:
        """Install prefix of the compositor: packaged builds live in /usr."""
        return Path("/usr") if self.fallback_desktop else Path("/opt/wayfire")
