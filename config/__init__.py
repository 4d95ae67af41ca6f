"""Config loader for scoring weights, tier settings and AI stage timeouts"""
import json
import os
from functools import lru_cache
from typing import Dict, Any

CONFIG_PATH = os.path.join(os.path.dirname(__file__), 'matching.json')

TIERS = ('top', 'broader')


@lru_cache(maxsize=1)
def load_matching_config() -> Dict[str, Any]:
    """Load and cache matching config (MATCHING_CONFIG_PATH overrides the bundled file)"""
    path = os.getenv('MATCHING_CONFIG_PATH') or CONFIG_PATH
    with open(path, 'r') as f:
        return json.load(f)


def get_scoring_weights() -> Dict[str, int]:
    """Get category point budgets and per-signal increments"""
    return load_matching_config()['scoring']


def get_tier_config(tier: str) -> Dict[str, Any]:
    """
    Get ranking settings for a tier.

    Args:
        tier: 'top' or 'broader'

    Returns:
        Dict with 'limit', 'min_score', 'semantic_max_points',
            'research_pool' and 'deep_research'
    """
    if tier not in TIERS:
        raise ValueError(f"Unknown tier: {tier}")
    return load_matching_config()['tiers'][tier]


def get_ai_settings() -> Dict[str, Any]:
    """Get model names and sampling temperatures"""
    return load_matching_config()['ai']


def get_stage_timeout(stage: str) -> float:
    """Get the timeout in seconds for one orchestrator stage"""
    timeouts = get_ai_settings()['stage_timeouts']
    return float(timeouts.get(stage, 60))


def get_industry_synergy() -> Dict[str, Any]:
    """Get the high-value industry pair list and same-industry bonus table"""
    return load_matching_config()['industry_synergy']
