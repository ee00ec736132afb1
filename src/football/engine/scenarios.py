"""
Late-game scenario classification.

Scenarios are an ordered tuple of rules; the first rule whose predicate
matches wins. BLOWOUT sits first so it overrides everything else, and
GENERIC is returned when nothing matches.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from config.settings import LateModuleSettings, settings
from src.football.models.schemas import MatchStateInput, ScenarioTag, TeamStrengthInput


@dataclass(frozen=True)
class ScenarioContext:
    """Inputs a scenario predicate may look at."""
    match: MatchStateInput
    strength: Optional[TeamStrengthInput]
    config: LateModuleSettings

    @property
    def abs_diff(self) -> int:
        return abs(self.match.score_diff)


@dataclass(frozen=True)
class ScenarioRule:
    """A (tag, predicate) pair in the priority list."""
    tag: ScenarioTag
    predicate: Callable[[ScenarioContext], bool]
    description: str = ""


# =============================================================================
# Predicates
# =============================================================================

def _is_blowout(ctx: ScenarioContext) -> bool:
    return ctx.abs_diff >= ctx.config.blowout_goal_diff


def _is_strong_behind(ctx: ScenarioContext) -> bool:
    strength = ctx.strength
    if strength is None:
        return False
    m = ctx.match
    diff = m.score_diff
    wide_gap = strength.strength_gap >= ctx.config.strong_gap

    if strength.is_home_strong and diff < 0 and wide_gap:
        return True
    if strength.is_away_strong and diff > 0 and wide_gap:
        return True

    # Level, but the stronger side is clearly creating more
    if strength.is_home_strong and diff == 0 and m.xg_home > m.xg_away + 0.5:
        return True
    if strength.is_away_strong and diff == 0 and m.xg_away > m.xg_home + 0.5:
        return True
    return False


def _is_weak_defend(ctx: ScenarioContext) -> bool:
    strength = ctx.strength
    if strength is None:
        return False
    diff = ctx.match.score_diff
    return (strength.is_home_strong and diff < 0) or (strength.is_away_strong and diff > 0)


def _is_deadlock_break(ctx: ScenarioContext) -> bool:
    m, cfg = ctx.match, ctx.config
    if m.total_goals == 0 and m.minute >= cfg.deadlock_minute and m.total_xg >= cfg.deadlock_min_xg:
        return True
    return (
        m.total_goals <= 1
        and m.xg_debt >= cfg.deadlock_debt
        and m.minute >= cfg.deadlock_debt_minute
    )


def _is_over_sprint(ctx: ScenarioContext) -> bool:
    m, cfg = ctx.match, ctx.config
    if m.xg_debt >= cfg.over_sprint_debt:
        return True
    return m.total_shots >= cfg.over_sprint_shots and m.total_xg >= cfg.over_sprint_xg


def _is_balanced_late(ctx: ScenarioContext) -> bool:
    return ctx.abs_diff <= 1


DEFAULT_RULES: tuple[ScenarioRule, ...] = (
    ScenarioRule(ScenarioTag.BLOWOUT, _is_blowout, "goal difference of three or more"),
    ScenarioRule(ScenarioTag.STRONG_BEHIND, _is_strong_behind, "stronger side behind or dominating a draw"),
    ScenarioRule(ScenarioTag.WEAK_DEFEND, _is_weak_defend, "weaker side defending a lead"),
    ScenarioRule(ScenarioTag.DEADLOCK_BREAK, _is_deadlock_break, "scoreless or low scoring with xG owed"),
    ScenarioRule(ScenarioTag.OVER_SPRINT, _is_over_sprint, "high xG debt or heavy shot volume"),
    ScenarioRule(ScenarioTag.BALANCED_LATE, _is_balanced_late, "close game late on"),
)


SCENARIO_LABELS: dict[ScenarioTag, str] = {
    ScenarioTag.BLOWOUT: "Blowout",
    ScenarioTag.STRONG_BEHIND: "Strong side chasing",
    ScenarioTag.WEAK_DEFEND: "Weak side defending",
    ScenarioTag.DEADLOCK_BREAK: "Deadlock break",
    ScenarioTag.OVER_SPRINT: "Over sprint",
    ScenarioTag.BALANCED_LATE: "Balanced late",
    ScenarioTag.GENERIC: "Generic",
}


def classify_scenario(
    match: MatchStateInput,
    strength: Optional[TeamStrengthInput] = None,
    config: Optional[LateModuleSettings] = None,
    rules: tuple[ScenarioRule, ...] = DEFAULT_RULES,
) -> ScenarioTag:
    """
    Return the tag of the first matching rule, or GENERIC.

    Args:
        match: Current match snapshot
        strength: Optional team strength; strength rules never match without it
        config: Late module settings (defaults to global settings)
        rules: Priority-ordered rule list
    """
    ctx = ScenarioContext(match=match, strength=strength, config=config or settings.late_module)
    for rule in rules:
        if rule.predicate(ctx):
            return rule.tag
    return ScenarioTag.GENERIC


def get_scenario_label(tag: ScenarioTag) -> str:
    return SCENARIO_LABELS[tag]
