"""Preset practice scenarios grouped by category."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel


class ScenarioPreset(BaseModel):
    title: str
    description: str
    user_role: str
    ai_role: str
    ai_role_short: str
    scenario: str


class ScenarioCategory(BaseModel):
    name: str
    scenarios: List[ScenarioPreset]


CATEGORIES: List[ScenarioCategory] = [
    ScenarioCategory(
        name="Change Management",
        scenarios=[
            ScenarioPreset(
                title="Legacy Plan Migration",
                description="Upsell a resistant customer.",
                ai_role=(
                    "Stubborn Customer who has been on a cheap legacy plan for years. They refuse to pay "
                    "more, don't care about new features, and feel the company is betraying loyalty."
                ),
                ai_role_short="Stubborn Customer",
                user_role="Sales Rep",
                scenario=(
                    "You are calling a loyal customer to inform them their $45/month legacy plan is being "
                    "retired. They must move to a new $60/month plan. The customer is happy with what they "
                    "have and will resist any price increase aggressively."
                ),
            ),
            ScenarioPreset(
                title="Process Change Resistance",
                description="Implement new software.",
                ai_role=(
                    "'Sarah', a veteran graphic designer of 8 years. She loves ease and speed, hates complex "
                    "tools, and thinks the new process is a waste of time."
                ),
                ai_role_short="Sarah (Veteran Designer)",
                user_role="Team Manager",
                scenario=(
                    "You need to tell Sarah that starting next week, all design submissions must go through "
                    "'ProjectFlow', a complex new management tool, instead of just emailing attachments. "
                    "She will argue that email is faster and works fine."
                ),
            ),
            ScenarioPreset(
                title="Remote Policy Pushback",
                description="Enforce core hours.",
                ai_role=(
                    "'Mike', a talented remote developer. He is a night owl, productive, but fiercely "
                    "protective of his flexible schedule and autonomy."
                ),
                ai_role_short="Mike (Remote Dev)",
                user_role="HR Manager",
                scenario=(
                    "You are introducing a new company policy requiring all remote workers to be logged in "
                    "between 10 AM and 3 PM. Mike works best late at night and will argue that this "
                    "arbitrary rule will hurt his productivity."
                ),
            ),
            ScenarioPreset(
                title="Role Restructuring",
                description="Change job responsibilities.",
                ai_role=(
                    "'David', a social media specialist. He loves creative work and hates technical "
                    "writing. He feels this change is a 'bait and switch' from his original job."
                ),
                ai_role_short="David (Social Media)",
                user_role="Head of Marketing",
                scenario=(
                    "Due to team restructuring, you must tell David that 50% of his role will now involve "
                    "writing technical white papers. He was hired for social media and will resist doing "
                    "work he dislikes and wasn't hired for."
                ),
            ),
            ScenarioPreset(
                title="Training Skeptic",
                description="Mandate new workflow.",
                ai_role=(
                    "'Alex', a top-performing sales employee. They are arrogant because of their results "
                    "and believe their own method is superior to your 'corporate script'."
                ),
                ai_role_short="Alex (Top Performer)",
                user_role="Corporate Trainer",
                scenario=(
                    "You just presented a mandatory new 5-step client call workflow. Alex interrupts to say "
                    "they are already hitting targets with their own style and shouldn't have to change "
                    "what works."
                ),
            ),
        ],
    ),
]


def all_presets() -> List[ScenarioPreset]:
    return [preset for category in CATEGORIES for preset in category.scenarios]


def find_preset(title: str) -> Optional[ScenarioPreset]:
    """Look up a preset by title, ignoring case and surrounding spaces."""

    wanted = title.strip().casefold()
    for preset in all_presets():
        if preset.title.casefold() == wanted:
            return preset
    return None


__all__ = ["CATEGORIES", "ScenarioCategory", "ScenarioPreset", "all_presets", "find_preset"]
