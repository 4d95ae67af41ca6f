"""
Networking matcher utilities
"""

from .helpers import (
    clean_text,
    split_phrases,
    is_decision_maker,
    is_founder,
    detect_business_models,
    has_established_signal,
    score_grade,
    quality_tier,
    generate_id,
    safe_get
)

__all__ = [
    'clean_text',
    'split_phrases',
    'is_decision_maker',
    'is_founder',
    'detect_business_models',
    'has_established_signal',
    'score_grade',
    'quality_tier',
    'generate_id',
    'safe_get'
]
