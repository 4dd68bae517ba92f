"""
Plan builder — resolved options in, ordered desktop Plan out.

The step order is the dependency order: build dependencies first, the
compositor before its plugins, packages before the configuration that
refers to them.
"""

from __future__ import annotations

import logging

from deskboot.core.engine.plan import Plan
from deskboot.core.engine.step import Step
from deskboot.core.errors import PlanError
from deskboot.core.models.options import PlanOptions
from deskboot.services.desktop import recipes, steps

logger = logging.getLogger(__name__)


def available_themes() -> dict[str, str]:
    """Theme key → display label."""
    return {key: theme["label"] for key, theme in recipes.THEMES.items()}


def build_plan(options: PlanOptions) -> Plan:
    """Build the desktop Plan for ``options``.

    A partial install keeps only the core of the desktop (packages,
    compositor, decorator, configuration and shell); a full install adds
    the AUR helper, themes, tools, fonts, wallpapers and services.

    Raises:
        PlanError: If the selected theme is unknown.
    """
    if options.theme not in recipes.THEMES:
        known = ", ".join(sorted(recipes.THEMES))
        raise PlanError(f"Unknown theme '{options.theme}' (available: {known})")

    full = options.full_install
    selected: list[Step] = [steps.system_packages(options)]

    if full:
        selected.append(steps.aur_helper(options))

    selected += [steps.wayfire(options), steps.pixdecor(options)]

    if full:
        selected += [
            steps.gtk_theme(options),
            steps.icon_theme(options),
            steps.swayosd(options),
            steps.desktop_tools(options),
            steps.nerd_font(options),
        ]
        if options.install_wallpapers:
            selected.append(steps.wallpapers(options))

    selected += [
        steps.dotfiles(options),
        steps.wayfire_environment(options),
        steps.shell_prompt(options),
        steps.login_shell(options),
    ]

    if full:
        selected.append(steps.swayosd_service(options))

    plan = Plan.build(selected, options)
    logger.debug("Built plan with %d steps: %s", len(plan), ", ".join(plan.names))
    return plan
