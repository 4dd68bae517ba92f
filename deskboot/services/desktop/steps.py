"""
Desktop steps — Step factories for the Wayfire desktop plan.

Each factory takes the resolved PlanOptions and returns one Step.  The
actions only ever talk to the host through the CommandRunner they are
handed, so dry-run simulates every one of them; pre/postconditions use
the read-only host probes.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from deskboot.core.engine.step import Criticality, Step
from deskboot.core.models.command import CommandSpec
from deskboot.core.models.options import PlanOptions
from deskboot.services import host_probes
from deskboot.services.desktop import recipes


# ── Helpers ─────────────────────────────────────────────────────


def _fetch_source(ctx, runner, repo: str, dest: Path) -> None:
    """Shallow-clone ``repo`` into ``dest``, or fast-forward an existing clone."""
    if (dest / ".git").is_dir():
        runner.execute(CommandSpec.of("git", "-C", str(dest), "pull", "--ff-only"), ctx)
    else:
        runner.execute(CommandSpec.of("git", "clone", "--depth", "1", repo, str(dest)), ctx)


def _meson_build(
    ctx,
    runner,
    source: Path,
    *,
    timeout: float,
    prefix: Path | None = None,
) -> None:
    """``meson setup`` + ``ninja`` as the user, install step through sudo."""
    setup = ["meson", "setup", "build"]
    env: dict[str, str] = {}
    if prefix is not None:
        setup.append(f"--prefix={prefix}")
        env["PKG_CONFIG_PATH"] = str(prefix / "lib" / "pkgconfig")

    cwd = str(source)
    runner.execute(CommandSpec.of(*setup, cwd=cwd, env=env, timeout=timeout), ctx)
    runner.execute(CommandSpec.of("ninja", "-C", "build", cwd=cwd, timeout=timeout), ctx)
    runner.execute(
        CommandSpec.of("ninja", "-C", "build", "install", cwd=cwd, privileged=True, timeout=timeout),
        ctx,
    )


def _install_prefix(recipe: dict, options: PlanOptions) -> Path | None:
    # Wayfire plugins must land beside the Wayfire build; others use meson's default
    return options.wayfire_prefix if recipe["use_wayfire_prefix"] else None


def _pacman_install(packages, *, upgrade: bool = False) -> CommandSpec:
    flag = "-Syu" if upgrade else "-S"
    return CommandSpec.of("pacman", flag, "--needed", "--noconfirm", *packages, privileged=True)


# ── 1. System packages ──────────────────────────────────────────


def system_packages(options: PlanOptions) -> Step:
    packages = recipes.BUILD_DEPENDENCIES

    def action(ctx, runner) -> None:
        runner.execute(_pacman_install(packages, upgrade=True), ctx)

    return Step(
        name="system-packages",
        description=f"Upgrade the system and install {len(packages)} build dependencies",
        action=action,
        precondition=lambda ctx: host_probes.packages_installed(packages),
        criticality=Criticality.FATAL,
        retryable=True,
        confirm=f"Run a full system upgrade and install {len(packages)} packages with pacman?",
    )


# ── 2. AUR helper ───────────────────────────────────────────────


def aur_helper(options: PlanOptions) -> Step:
    helper = options.aur_helper
    recipe = recipes.AUR_HELPERS[helper]
    dest = options.build_root / recipe["dir"]

    def action(ctx, runner) -> None:
        _fetch_source(ctx, runner, recipe["repo"], dest)
        runner.execute(
            CommandSpec.of(
                "makepkg", "-si", "--noconfirm",
                cwd=str(dest), capture=False, timeout=options.build_timeout,
            ),
            ctx,
        )

    return Step(
        name="aur-helper",
        description=f"Build the {helper} AUR helper",
        action=action,
        precondition=lambda ctx: host_probes.command_available(helper),
        postcondition=lambda ctx: host_probes.command_available(helper),
        criticality=Criticality.ADVISORY,
        workdir=dest,
    )


# ── 3. Compositor ───────────────────────────────────────────────


def wayfire(options: PlanOptions) -> Step:
    binary = options.wayfire_prefix / recipes.SOURCE_RECIPES["wayfire"]["binary"]
    installed = lambda ctx: host_probes.path_exists(binary)  # noqa: E731

    if options.fallback_desktop:
        packages = recipes.FALLBACK_DESKTOP_PACKAGES

        def fallback_action(ctx, runner) -> None:
            runner.execute(_pacman_install(packages), ctx)

        return Step(
            name="wayfire",
            description="Install the packaged Wayfire desktop",
            action=fallback_action,
            precondition=installed,
            postcondition=installed,
            criticality=Criticality.FATAL,
            retryable=True,
        )

    recipe = recipes.SOURCE_RECIPES["wayfire"]
    dest = options.build_root / recipe["dir"]

    def action(ctx, runner) -> None:
        _fetch_source(ctx, runner, recipe["repo"], dest)
        runner.execute(
            CommandSpec.of(
                "./install.sh", "--prefix", str(options.wayfire_prefix), *recipe["args"],
                cwd=str(dest), capture=False, timeout=options.build_timeout,
            ),
            ctx,
        )

    return Step(
        name="wayfire",
        description=f"Build {recipe['label']} into {options.wayfire_prefix}",
        action=action,
        precondition=installed,
        postcondition=installed,
        criticality=Criticality.FATAL,
        workdir=dest,
    )


def pixdecor(options: PlanOptions) -> Step:
    recipe = recipes.SOURCE_RECIPES["pixdecor"]
    dest = options.build_root / recipe["dir"]
    prefix = _install_prefix(recipe, options)
    artifact = options.wayfire_prefix / recipe["artifact"]

    def action(ctx, runner) -> None:
        _fetch_source(ctx, runner, recipe["repo"], dest)
        _meson_build(ctx, runner, dest, prefix=prefix, timeout=options.build_timeout)

    return Step(
        name="pixdecor",
        description=f"Build the {recipe['label']}",
        action=action,
        precondition=lambda ctx: host_probes.path_exists(artifact),
        criticality=Criticality.ADVISORY,
        workdir=dest,
    )


# ── Appearance ──────────────────────────────────────────────────


def gtk_theme(options: PlanOptions) -> Step:
    theme = recipes.THEMES[options.theme]
    dest = options.build_root / theme["dir"]
    themes_dir = options.home / ".local" / "share" / "themes"

    def action(ctx, runner) -> None:
        _fetch_source(ctx, runner, theme["repo"], dest)
        runner.execute(
            CommandSpec.of(
                "./install.sh", "-d", str(themes_dir), *theme["install_args"],
                cwd=str(dest), timeout=options.build_timeout,
            ),
            ctx,
        )

    return Step(
        name="gtk-theme",
        description=f"Install the {theme['label']} GTK theme",
        action=action,
        precondition=lambda ctx: host_probes.any_match(themes_dir, theme["installed_glob"]),
        postcondition=lambda ctx: host_probes.any_match(themes_dir, theme["installed_glob"]),
        criticality=Criticality.ADVISORY,
        # The theme installer links its libadwaita assets into gtk-4.0.
        mutates=(options.config_dir / "gtk-4.0",),
        workdir=dest,
    )


def icon_theme(options: PlanOptions) -> Step:
    recipe = recipes.ICON_THEME
    dest = options.build_root / recipe["dir"]
    icons_dir = options.home / ".local" / "share" / "icons"

    def action(ctx, runner) -> None:
        _fetch_source(ctx, runner, recipe["repo"], dest)
        runner.execute(
            CommandSpec.of("./install.sh", "-d", str(icons_dir), cwd=str(dest),
                           timeout=options.build_timeout),
            ctx,
        )

    return Step(
        name="icon-theme",
        description=f"Install {recipe['label']}",
        action=action,
        precondition=lambda ctx: host_probes.any_match(icons_dir, recipe["installed_glob"]),
        criticality=Criticality.ADVISORY,
        workdir=dest,
    )


# ── Tools ───────────────────────────────────────────────────────


def swayosd(options: PlanOptions) -> Step:
    recipe = recipes.SOURCE_RECIPES["swayosd"]
    dest = options.build_root / recipe["dir"]

    def action(ctx, runner) -> None:
        _fetch_source(ctx, runner, recipe["repo"], dest)
        _meson_build(ctx, runner, dest, prefix=_install_prefix(recipe, options),
                     timeout=options.build_timeout)

    return Step(
        name="swayosd",
        description=f"Build {recipe['label']}",
        action=action,
        precondition=lambda ctx: host_probes.command_available(recipe["binary_name"]),
        criticality=Criticality.ADVISORY,
        workdir=dest,
    )


def desktop_tools(options: PlanOptions) -> Step:
    repo_packages = (*recipes.DESKTOP_TOOLS, *options.extra_packages)
    aur_packages = (*recipes.AUR_TOOLS, *options.extra_aur_packages)
    helper = options.aur_helper

    def action(ctx, runner) -> None:
        runner.execute(_pacman_install(repo_packages), ctx)
        if aur_packages:
            # AUR helpers refuse to run as root; they call sudo themselves.
            runner.execute(
                CommandSpec.of(helper, "-S", "--needed", "--noconfirm", *aur_packages,
                               capture=False, timeout=options.build_timeout),
                ctx,
            )

    return Step(
        name="desktop-tools",
        description=f"Install {len(repo_packages) + len(aur_packages)} desktop tools",
        action=action,
        precondition=lambda ctx: host_probes.packages_installed((*repo_packages, *aur_packages)),
        criticality=Criticality.ADVISORY,
        retryable=True,
    )


def nerd_font(options: PlanOptions) -> Step:
    font = recipes.NERD_FONT
    fonts_dir = options.home / ".local" / "share" / "fonts" / font["dir"]
    archive = options.build_root / Path(font["url"]).name

    def action(ctx, runner) -> None:
        try:
            runner.execute(CommandSpec.of("mkdir", "-p", str(options.build_root), str(fonts_dir)), ctx)
            runner.execute(CommandSpec.of("curl", "-fL", "-o", str(archive), font["url"]), ctx)
            runner.execute(CommandSpec.of("unzip", "-o", "-q", str(archive), "-d", str(fonts_dir)), ctx)
            runner.execute(CommandSpec.of("fc-cache", "-f"), ctx)
        finally:
            if not ctx.dry_run:
                archive.unlink(missing_ok=True)

    return Step(
        name="nerd-font",
        description=f"Install the {font['label']}",
        action=action,
        precondition=lambda ctx: host_probes.any_match(fonts_dir, font["installed_glob"]),
        postcondition=lambda ctx: host_probes.any_match(fonts_dir, font["installed_glob"]),
        criticality=Criticality.ADVISORY,
        retryable=True,
    )


def wallpapers(options: PlanOptions) -> Step:
    dest = options.home / "Pictures" / "wallpapers"

    def action(ctx, runner) -> None:
        runner.execute(
            CommandSpec.of("git", "clone", "--depth", "1", options.wallpapers_repo, str(dest),
                           timeout=options.build_timeout),
            ctx,
        )

    return Step(
        name="wallpapers",
        description="Download the wallpaper collection",
        action=action,
        precondition=lambda ctx: host_probes.path_exists(dest / ".git"),
        criticality=Criticality.ADVISORY,
        workdir=dest,
    )


# ── Configuration ───────────────────────────────────────────────


def dotfiles(options: PlanOptions) -> Step:
    pairs = [
        (options.dotfiles_dir / rel, options.config_dir / rel)
        for rel in recipes.DOTFILES
    ]

    def deployed(ctx) -> bool:
        return all(host_probes.files_identical(src, dest) for src, dest in pairs)

    def action(ctx, runner) -> None:
        for src, dest in pairs:
            runner.execute(CommandSpec.of("install", "-D", "-m", "644", str(src), str(dest)), ctx)

    return Step(
        name="dotfiles",
        description=f"Deploy {len(pairs)} configuration files into {options.config_dir}",
        action=action,
        precondition=deployed,
        postcondition=deployed,
        criticality=Criticality.FATAL,
        mutates=tuple(dest for _, dest in pairs),
    )


def wayfire_environment(options: PlanOptions) -> Step:
    env_file = Path(recipes.ENVIRONMENT_FILE)
    line = recipes.WAYFIRE_SOCKET_LINE
    present = lambda ctx: host_probes.file_contains_line(env_file, line)  # noqa: E731

    def action(ctx, runner) -> None:
        runner.execute(
            CommandSpec.of("tee", "-a", str(env_file), privileged=True, input_text=f"{line}\n"),
            ctx,
        )

    return Step(
        name="wayfire-environment",
        description=f"Add the Wayfire IPC socket to {env_file}",
        action=action,
        precondition=present,
        postcondition=present,
        criticality=Criticality.ADVISORY,
        mutates=(env_file,),
        privileged_paths=frozenset({env_file}),
    )


def shell_prompt(options: PlanOptions) -> Step:
    config = options.config_dir / "fish" / "config.fish"
    line = recipes.STARSHIP_FISH_LINE
    present = lambda ctx: host_probes.file_contains_line(config, line)  # noqa: E731

    def action(ctx, runner) -> None:
        runner.execute(CommandSpec.of("mkdir", "-p", str(config.parent)), ctx)
        runner.execute(CommandSpec.of("tee", "-a", str(config), input_text=f"{line}\n"), ctx)

    return Step(
        name="shell-prompt",
        description="Enable the starship prompt in fish",
        action=action,
        precondition=present,
        postcondition=present,
        criticality=Criticality.ADVISORY,
        mutates=(config,),
    )


def login_shell(options: PlanOptions) -> Step:
    def action(ctx, runner) -> None:
        fish = shutil.which("fish") or "/usr/bin/fish"
        # chsh asks for the password on the terminal.
        runner.execute(CommandSpec.of("chsh", "-s", fish, capture=False), ctx)

    return Step(
        name="login-shell",
        description="Make fish the login shell",
        action=action,
        precondition=lambda ctx: Path(host_probes.login_shell()).name == "fish",
        criticality=Criticality.ADVISORY,
        confirm="Change your login shell to fish?",
    )


def swayosd_service(options: PlanOptions) -> Step:
    unit = recipes.SOURCE_RECIPES["swayosd"]["service"]

    def action(ctx, runner) -> None:
        runner.execute(CommandSpec.of("systemctl", "enable", "--now", unit, privileged=True), ctx)

    return Step(
        name="swayosd-service",
        description=f"Enable {unit}",
        action=action,
        precondition=lambda ctx: host_probes.service_enabled(unit),
        criticality=Criticality.ADVISORY,
    )
