"""
Utility functions for the networking matcher
All helpers are total: None, numbers and empty strings never raise.
"""

import re
import time
import random
import string
from typing import Optional, List, Set, Any


DECISION_MAKER_KEYWORDS = [
    'founder', 'co-founder', 'ceo', 'owner', 'president', 'principal',
    'managing partner', 'partner', 'chief', 'chair', 'director', 'vp',
    'vice president', 'head of'
]

FOUNDER_KEYWORDS = ['founder', 'ceo', 'owner']

B2B_KEYWORDS = ['b2b', 'enterprise', 'saas', 'consulting', 'agency']
B2C_KEYWORDS = ['retail', 'consumer', 'ecommerce', 'e-commerce', 'subscription']

ESTABLISHED_PATTERN = re.compile(
    r'\$\d+[mkb]|\d+\+? years?|million|billion|national|award',
    re.IGNORECASE
)


def clean_text(value: Any) -> str:
    """
    Normalize a free-text profile field

    Args:
        value: Raw field value (may be None)

    Returns:
        Stripped string, '' for missing values
    """
    if value is None:
        return ''
    return str(value).strip()


def split_phrases(text: Any) -> List[str]:
    """
    Split a comma-separated capability list into lower-cased phrases

    Args:
        text: e.g. "Marketing, SEO ,  social media"

    Returns:
        ['marketing', 'seo', 'social media'] (empty entries dropped)
    """
    cleaned = clean_text(text).lower()
    if not cleaned:
        return []
    return [part.strip() for part in cleaned.split(',') if part.strip()]


def is_decision_maker(role: Any) -> bool:
    """Check whether a role title reads as a senior decision-maker"""
    role_lower = clean_text(role).lower()
    return any(k in role_lower for k in DECISION_MAKER_KEYWORDS)


def is_founder(role: Any) -> bool:
    """Check whether a role title names a founder, CEO or owner"""
    role_lower = clean_text(role).lower()
    return any(k in role_lower for k in FOUNDER_KEYWORDS)


def detect_business_models(revenue_driver: Any) -> Set[str]:
    """
    Detect B2B / B2C signals from revenue-driver text

    Args:
        revenue_driver: Free-text revenue description

    Returns:
        Subset of {'B2B', 'B2C'}; both may be present
    """
    text = clean_text(revenue_driver).lower()
    models = set()
    if any(k in text for k in B2B_KEYWORDS):
        models.add('B2B')
    if any(k in text for k in B2C_KEYWORDS):
        models.add('B2C')
    return models


def has_established_signal(text: Any) -> bool:
    """Detect track-record signals such as '$3M', '20 years', 'award', 'million'"""
    return bool(ESTABLISHED_PATTERN.search(clean_text(text)))


def score_grade(percentage: float) -> str:
    """
    Letter grade for a 0-100 score

    Args:
        percentage: Earned points as a percentage of possible points

    Returns:
        'A+', 'A', 'B+', 'B' or 'C+'
    """
    if percentage >= 85:
        return 'A+'
    if percentage >= 75:
        return 'A'
    if percentage >= 65:
        return 'B+'
    if percentage >= 55:
        return 'B'
    return 'C+'


def quality_tier(score: float) -> str:
    """Bucket a total score for admin reporting"""
    if score >= 75:
        return 'excellent'
    if score >= 60:
        return 'strong'
    if score >= 50:
        return 'good'
    if score >= 40:
        return 'moderate'
    return 'baseline'


def generate_id(prefix: str) -> str:
    """
    Generate an opaque record ID

    Args:
        prefix: 'member' or 'intro'

    Returns:
        '<prefix>-<epoch ms>-<9 random base36 chars>'
    """
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def safe_get(obj: Optional[dict], key: str, default: str = "Not disclosed") -> str:
    """
    Safely get a display value from a profile dict

    Args:
        obj: Profile dict (may be None)
        key: Field name
        default: Shown when the field is missing or blank

    Returns:
        Field value or default
    """
    if not obj:
        return default
    value = clean_text(obj.get(key))
    return value if value else default
