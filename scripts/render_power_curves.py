#!/usr/bin/env python3
"""Render power capacity by level for every growth class, or for each role."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

import matplotlib.pyplot as plt

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rangerbot.config import DEFAULT_RULES_PATH
from rangerbot.constants import MAX_LEVEL, MIN_LEVEL, ROLE_COLOURS, PowerGrowth
from rangerbot.models.rules import load_rules
from rangerbot.stats import power_capacity

GROWTH_STYLES = {
    PowerGrowth.SLOW: {"color": "#7f7f7f", "style": "dotted"},
    PowerGrowth.MODERATE: {"color": "#1f77b4", "style": "dashed"},
    PowerGrowth.FAST: {"color": "#d62728", "style": "solid"},
}


def _levels() -> list[int]:
    return list(range(MIN_LEVEL, MAX_LEVEL + 1))


def render_growth_classes(output_path: Path, dpi: int) -> None:
    levels = _levels()
    fig, ax = plt.subplots(figsize=(10, 6), dpi=dpi)
    for growth, style in GROWTH_STYLES.items():
        ax.step(
            levels,
            [power_capacity(level, growth) for level in levels],
            where="post",
            color=style["color"],
            linestyle=style["style"],
            linewidth=2.0,
            label=f"{growth.value.title()} (+{growth.multiplier} every {growth.divisor})",
        )
    _finish(ax, "Power capacity by growth class")
    fig.savefig(output_path, bbox_inches="tight")
    plt.close(fig)


def render_roles(output_path: Path, dpi: int, rules_path: Path) -> None:
    rules = load_rules(rules_path)
    levels = _levels()
    fig, ax = plt.subplots(figsize=(10, 6), dpi=dpi)
    for offset, role in enumerate(rules.roles.values()):
        colour = ROLE_COLOURS.get(role.colour)
        # Nudge overlapping lines apart so every role stays visible.
        nudge = offset * 0.05
        ax.step(
            levels,
            [power_capacity(level, role.power_growth) + nudge for level in levels],
            where="post",
            color=str(colour) if colour else None,
            linewidth=2.0,
            label=f"{role.name} ({role.power_growth.value})",
        )
    _finish(ax, "Power capacity by role")
    fig.savefig(output_path, bbox_inches="tight")
    plt.close(fig)


def _finish(ax, title: str) -> None:
    ax.set_title(title)
    ax.set_xlabel("Level")
    ax.set_ylabel("Power capacity")
    ax.set_xticks(_levels())
    ax.grid(True, alpha=0.3)
    ax.legend(loc="upper left")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("img/power-capacity.png"),
        help="Where to write the rendered chart.",
    )
    parser.add_argument("--dpi", type=int, default=150, help="Rendering DPI for the chart.")
    parser.add_argument(
        "--mode",
        choices=("growth", "roles"),
        default="growth",
        help="Plot the three growth classes or every role in the rule tables.",
    )
    parser.add_argument(
        "--rules",
        type=Path,
        default=DEFAULT_RULES_PATH,
        help="Rule tables used in roles mode.",
    )

    args = parser.parse_args()
    args.output.parent.mkdir(parents=True, exist_ok=True)
    if args.mode == "roles":
        render_roles(args.output, dpi=args.dpi, rules_path=args.rules)
    else:
        render_growth_classes(args.output, dpi=args.dpi)


if __name__ == "__main__":
    main()
