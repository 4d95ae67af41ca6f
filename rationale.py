"""
Rationale - the three-part "why you should meet" text and its no-AI fallback
"""
from dataclasses import dataclass, asdict
from typing import Dict, Any

from profile_features import extract_features
from semantic_matcher import find_value_exchanges


@dataclass(frozen=True)
class Rationale:
    strategic_rationale: str
    collaboration_angle: str
    conversation_openers: str
    source: str = 'ai'

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def generate_fallback_rationale(subject: Dict[str, Any], candidate: Dict[str, Any]) -> Rationale:
    """
    Deterministic rationale built from keyword-level matches only.

    Never calls out, never raises, and every field is non-empty no matter
    how sparse the two profiles are.

    Args:
        subject: Member the intro is written for (addressed as "you")
        candidate: Member being suggested

    Returns:
        Rationale with source 'fallback'
    """
    s = extract_features(subject)
    c = extract_features(candidate)

    their_name = c.name or 'this attendee'
    their_business = c.org or (f"{c.name}'s business" if c.name else 'their business')
    your_business = s.org or 'your business'

    exchanges = find_value_exchanges(s, c)
    # Lead with what they can do for you
    exchanges.sort(key=lambda e: 0 if e['direction'] == 'receives' else 1)

    if exchanges:
        first = exchanges[0]
        if first['direction'] == 'receives':
            strategic = f"{their_name}'s {first['asset']} can help with your need for {first['need']}."
        else:
            strategic = f"Your {first['asset']} can help with {their_name}'s need for {first['need']}."
    elif s.industry and s.industry_key == c.industry_key:
        strategic = (
            f"You and {their_name} both work in {s.industry}, so you share a market "
            f"and can compare notes on what is working."
        )
    else:
        strategic = (
            f"Both in {s.industry or 'business'} and {c.industry or 'business'}, "
            f"you and {their_name} have potential for collaboration."
        )

    if s.fun_fact and c.fun_fact:
        angle = f"Connect over your personal stories first, then explore synergies between {your_business} and {their_business}."
    else:
        angle = f"Explore synergies between {your_business} and {their_business}."

    openers = (
        f"Start by discussing {s.constraint or 'your current challenges'} "
        f"and how {c.org or their_name}'s expertise might help."
    )

    return Rationale(
        strategic_rationale=strategic,
        collaboration_angle=angle,
        conversation_openers=openers,
        source='fallback'
    )
