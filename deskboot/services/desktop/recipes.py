"""
Desktop recipes — packages, source repositories, themes and fonts.

Pure data, no logic.  The plan builder turns these into Steps.
"""

from __future__ import annotations

# ── Packages ────────────────────────────────────────────────────

# Toolchain and libraries needed to build Wayfire and its plugins.
BUILD_DEPENDENCIES: tuple[str, ...] = (
    "freetype2", "glm", "libdrm", "libevdev", "libgl", "libinput",
    "libjpeg-turbo", "libpng", "libxkbcommon", "libxml2", "pixman",
    "wayland-protocols", "wlroots", "meson", "cmake", "doctest", "doxygen",
    "nlohmann-json", "libnotify", "base-devel", "pkgconf", "autoconf",
    "gobject-introspection", "gtk-layer-shell", "scour", "libdbusmenu-gtk3",
    "gtkmm3", "glib2-devel", "git", "curl", "unzip",
)

# Packaged compositor used instead of the source build (--fallback-desktop).
FALLBACK_DESKTOP_PACKAGES: tuple[str, ...] = ("wayfire", "wf-shell", "wcm")

# Everyday tools from the official repositories.
DESKTOP_TOOLS: tuple[str, ...] = ("fish", "starship", "mako", "swappy", "lite-xl")

# Tools that only exist in the AUR.
AUR_TOOLS: tuple[str, ...] = ("ulauncher", "xava", "ironbar")

# ── AUR helpers (bootstrapped with makepkg) ─────────────────────

AUR_HELPERS: dict[str, dict] = {
    "yay": {"repo": "https://aur.archlinux.org/yay-bin.git", "dir": "yay-bin"},
    "paru": {"repo": "https://aur.archlinux.org/paru-bin.git", "dir": "paru-bin"},
}

# ── Source builds ───────────────────────────────────────────────

SOURCE_RECIPES: dict[str, dict] = {
    "wayfire": {
        "label": "Wayfire (wf-install)",
        "repo": "https://github.com/WayfireWM/wf-install",
        "dir": "wf-install",
        "args": ["--stream", "master"],
        "binary": "bin/wayfire",
    },
    "pixdecor": {
        "label": "Pixdecor decorator plugin",
        "repo": "https://github.com/soreau/pixdecor.git",
        "dir": "pixdecor",
        "use_wayfire_prefix": True,
        "artifact": "lib/wayfire/libpixdecor.so",
    },
    "swayosd": {
        "label": "SwayOSD",
        "repo": "https://github.com/ErikReider/SwayOSD",
        "dir": "SwayOSD",
        "use_wayfire_prefix": False,
        "binary_name": "swayosd-server",
        "service": "swayosd-libinput-backend.service",
    },
}

# ── Themes ──────────────────────────────────────────────────────

THEMES: dict[str, dict] = {
    "tokyonight": {
        "label": "Tokyo Night",
        "repo": "https://github.com/Fausto-Korpsvart/Tokyo-Night-GTK-Theme",
        "dir": "Tokyo-Night-GTK-Theme",
        "install_args": ["-c", "dark", "-l", "--tweaks", "black"],
        "installed_glob": "Tokyonight*",
    },
    "kanagawa": {
        "label": "Kanagawa",
        "repo": "https://github.com/Fausto-Korpsvart/Kanagawa-GKT-Theme",
        "dir": "Kanagawa-GKT-Theme",
        "install_args": ["-c", "dark", "-l"],
        "installed_glob": "Kanagawa*",
    },
    "gruvbox": {
        "label": "Gruvbox",
        "repo": "https://github.com/Fausto-Korpsvart/Gruvbox-GTK-Theme",
        "dir": "Gruvbox-GTK-Theme",
        "install_args": ["-c", "dark", "-l"],
        "installed_glob": "Gruvbox*",
    },
}

ICON_THEME: dict = {
    "label": "Tela circle icons",
    "repo": "https://github.com/vinceliuice/Tela-circle-icon-theme",
    "dir": "Tela-circle-icon-theme",
    "installed_glob": "Tela-circle*",
}

# ── Fonts ───────────────────────────────────────────────────────

NERD_FONT: dict = {
    "label": "Caskaydia Cove Nerd Font",
    "url": "https://github.com/ryanoasis/nerd-fonts/releases/download/v3.2.1/CascadiaCode.zip",
    "dir": "CaskaydiaCove",
    "installed_glob": "CaskaydiaCove*.ttf",
}

# ── Environment / shell ─────────────────────────────────────────

ENVIRONMENT_FILE = "/etc/environment"
WAYFIRE_SOCKET_LINE = "WAYFIRE_SOCKET=/tmp/wayfire-wayland-1.socket"
STARSHIP_FISH_LINE = "starship init fish | source"

# Dotfiles shipped in deskboot/data/dotfiles, relative to ~/.config.
DOTFILES: tuple[str, ...] = (
    "wf-shell.ini",
    "waybar/config_wayfire_now.ini",
)
