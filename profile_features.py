"""
Profile Features - normalizes attendee free-text fields for scoring and embedding
"""
from dataclasses import dataclass, field
from typing import Dict, List, Any

from utils.helpers import clean_text, split_phrases


@dataclass(frozen=True)
class ProfileFeatures:
    """Normalized view of one attendee profile. Every field is a string or list, never None."""
    member_id: str = ''
    name: str = ''
    org: str = ''
    role: str = ''
    industry: str = ''
    city: str = ''
    revenue_driver: str = ''
    constraint: str = ''
    fun_fact: str = ''
    needs: List[str] = field(default_factory=list)
    assets: List[str] = field(default_factory=list)

    @property
    def industry_key(self) -> str:
        return self.industry.lower()

    @property
    def city_key(self) -> str:
        return self.city.lower()


def extract_features(member: Dict[str, Any]) -> ProfileFeatures:
    """
    Build ProfileFeatures from a raw member record

    Args:
        member: Row from the members table (missing keys allowed)

    Returns:
        ProfileFeatures with lower-cased needs/assets phrase lists
    """
    member = member or {}
    return ProfileFeatures(
        member_id=clean_text(member.get('member_id')),
        name=clean_text(member.get('name')),
        org=clean_text(member.get('org')),
        role=clean_text(member.get('role')),
        industry=clean_text(member.get('industry')),
        city=clean_text(member.get('city')),
        revenue_driver=clean_text(member.get('rev_driver')),
        constraint=clean_text(member.get('current_constraint')),
        fun_fact=clean_text(member.get('fun_fact')),
        needs=split_phrases(member.get('needs')),
        assets=split_phrases(member.get('assets')),
    )


def build_embedding_text(member: Dict[str, Any]) -> str:
    """
    Concatenate every business field under a short label for the embedding model

    Args:
        member: Row from the members table

    Returns:
        Multi-line profile text; absent fields render as empty strings
    """
    member = member or {}
    lines = [
        f"Role: {clean_text(member.get('role'))}",
        f"Organization: {clean_text(member.get('org'))}",
        f"Industry: {clean_text(member.get('industry'))}",
        f"Location: {clean_text(member.get('city'))}",
        f"Revenue Model: {clean_text(member.get('rev_driver'))}",
        f"Current Challenge: {clean_text(member.get('current_constraint'))}",
        f"What I Bring: {clean_text(member.get('assets'))}",
        f"What I Need: {clean_text(member.get('needs'))}",
        f"About Me: {clean_text(member.get('fun_fact'))}",
    ]
    return "\n".join(lines)
