from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping

from mealgen.core.errors import InvalidConfiguration

StageProfile = Literal["meal_modal", "loading_screen", "compact"]


@dataclass(frozen=True, slots=True)
class Stage:
    """
    One named phase of the simulated generation, with a fixed display duration.

    icon is an opaque display token; the engine never interprets it.
    """

    id: str
    title: str
    description: str
    duration_seconds: float
    icon: str = ""


# Shown by the meal generation modal (total 11s)
MEAL_MODAL_STAGES: tuple[Stage, ...] = (
    Stage(
        id="analyzing",
        title="Analyzing Your Family",
        description="Understanding dietary needs and preferences",
        duration_seconds=2.0,
        icon="🧠",
    ),
    Stage(
        id="safety_checking",
        title="Safety Assessment",
        description="Checking allergens and dietary restrictions",
        duration_seconds=1.5,
        icon="🛡️",
    ),
    Stage(
        id="generating",
        title="Creating Your Recipe",
        description="AI is crafting the perfect meal for your family",
        duration_seconds=4.0,
        icon="✨",
    ),
    Stage(
        id="optimizing",
        title="Optimizing for Your Kitchen",
        description="Adjusting for cooking skill and available time",
        duration_seconds=1.5,
        icon="🍳",
    ),
    Stage(
        id="finalizing",
        title="Adding the Finishing Touches",
        description="Final safety checks and family recommendations",
        duration_seconds=2.0,
        icon="🎯",
    ),
)

# Full-screen loading state (total 12s)
LOADING_SCREEN_STAGES: tuple[Stage, ...] = (
    Stage(
        id="analyzing",
        title="Analyzing Your Family",
        description="Understanding dietary needs and preferences",
        duration_seconds=2.5,
        icon="👨‍👩‍👧‍👦",
    ),
    Stage(
        id="safety_checking",
        title="Safety Assessment",
        description="Checking allergens and dietary restrictions",
        duration_seconds=2.0,
        icon="🛡️",
    ),
    Stage(
        id="creating",
        title="Creating Your Recipe",
        description="Crafting a delicious and nutritious meal",
        duration_seconds=4.0,
        icon="👨‍🍳",
    ),
    Stage(
        id="optimizing",
        title="Optimizing for Your Kitchen",
        description="Adjusting for your cooking skill and time",
        duration_seconds=2.0,
        icon="⚙️",
    ),
    Stage(
        id="final_checks",
        title="Final Safety Checks",
        description="Ensuring everything is perfect for your family",
        duration_seconds=1.5,
        icon="✅",
    ),
)

# Text-only variant (no icons, total 12s)
COMPACT_STAGES: tuple[Stage, ...] = (
    Stage(
        id="analyzing",
        title="Understanding your family",
        description="Analyzing household preferences and dietary needs",
        duration_seconds=2.0,
    ),
    Stage(
        id="searching",
        title="Finding perfect ingredients",
        description="Selecting ingredients that work for everyone",
        duration_seconds=3.0,
    ),
    Stage(
        id="creating",
        title="Crafting your recipe",
        description="Generating instructions and cooking steps",
        duration_seconds=4.0,
    ),
    Stage(
        id="safety_check",
        title="Safety verification",
        description="Checking for allergens and dietary compliance",
        duration_seconds=2.0,
    ),
    Stage(
        id="finalizing",
        title="Adding finishing touches",
        description="Optimizing for your family and preferences",
        duration_seconds=1.0,
    ),
)

STAGE_PROFILES: Mapping[str, tuple[Stage, ...]] = {
    "meal_modal": MEAL_MODAL_STAGES,
    "loading_screen": LOADING_SCREEN_STAGES,
    "compact": COMPACT_STAGES,
}


def stages_for_profile(profile: str) -> tuple[Stage, ...]:
    try:
        return STAGE_PROFILES[profile]
    except KeyError:
        known = ", ".join(sorted(STAGE_PROFILES))
        raise InvalidConfiguration(f"unknown stage profile: {profile!r} (known: {known})") from None
