"""
Semantic Matcher - decides whether a stated need and a stated asset are complementary

Matching policy, first hit wins:
1. Direct substring containment (either direction)
2. Shared semantic cluster (e.g. "seo" and "branding" are both marketing)
3. Directional (need pattern, asset pattern) business rules

Pure and total: no network calls, never raises for string input.
"""
import re
from typing import Dict, List, Optional, Pattern, Tuple

from profile_features import ProfileFeatures


SEMANTIC_CLUSTERS: Dict[str, List[str]] = {
    'marketing': [
        'marketing', 'seo', 'search engine optimization', 'social media', 'branding',
        'brand', 'content', 'advertising', 'ads', 'pr', 'public relations',
        'influencer', 'campaign', 'copywriting'
    ],
    'sales': [
        'sales', 'lead generation', 'leads', 'business development', 'customer acquisition',
        'prospecting', 'crm', 'referrals', 'distribution', 'partnerships'
    ],
    'technical': [
        'software', 'technology', 'tech', 'engineering', 'app', 'website', 'web',
        'ai', 'automation', 'it', 'data', 'platform', 'saas', 'cloud', 'development'
    ],
    'financial': [
        'funding', 'capital', 'investment', 'investor', 'investors', 'finance', 'financial',
        'accounting', 'bookkeeping', 'cash flow', 'fundraising', 'venture', 'loan', 'tax'
    ],
    'operational': [
        'operations', 'logistics', 'supply chain', 'manufacturing', 'process',
        'efficiency', 'workflow', 'inventory', 'fulfillment', 'scaling'
    ],
    'strategic': [
        'strategy', 'consulting', 'advisory', 'mentorship', 'mentor', 'coaching',
        'leadership', 'growth', 'planning', 'expansion'
    ],
    'legal': [
        'legal', 'law', 'compliance', 'regulatory', 'contracts', 'intellectual property',
        'ip', 'trademark', 'government relations'
    ],
    'talent': [
        'hiring', 'recruiting', 'recruitment', 'talent', 'hr', 'human resources',
        'staffing', 'training', 'team building'
    ],
    'creative': [
        'design', 'video', 'video production', 'photography', 'storytelling',
        'creative', 'production', 'ux'
    ],
    'customer': [
        'customer service', 'customer experience', 'support', 'retention',
        'community', 'engagement', 'reputation', 'reputation management'
    ],
}

# (need pattern, asset pattern). Checked need -> asset only.
PATTERN_PAIRS: List[Tuple[str, str]] = [
    (r'customer|client|lead', r'sales|marketing|business development|crm'),
    (r'funding|capital|invest', r'financ|investor|venture|capital|banking'),
    (r'brand|awareness|visibility|reputation|perception', r'\bpr\b|public relations|media|content|social|marketing|storytelling'),
    (r'scal|growth|expan', r'operations|strategy|consulting|systems|automation|manufacturing'),
    (r'tech|software|\bapp\b|website|digital|platform', r'engineering|development|software|technology|\bai\b'),
    (r'legal|compliance|regulat', r'legal|\blaw\b|compliance|attorney|counsel'),
    (r'hir|talent|team|staff', r'recruit|\bhr\b|human resources|staffing|training'),
    (r'efficien|automat|workflow|process', r'\bai\b|automation|software|operations|systems'),
    (r'mentor|advice|guidance', r'experience|years|founder|coaching|advisory|mentor'),
    (r'partner|distribution|channel|market access', r'network|relationships|distribution|partnerships|audience'),
]


def _compile_term(term: str) -> Pattern:
    return re.compile(r'\b' + re.escape(term) + r'\b')


_CLUSTER_PATTERNS: Dict[str, List[Pattern]] = {
    name: [_compile_term(term) for term in terms]
    for name, terms in SEMANTIC_CLUSTERS.items()
}

_PAIR_PATTERNS: List[Tuple[Pattern, Pattern]] = [
    (re.compile(need, re.IGNORECASE), re.compile(asset, re.IGNORECASE))
    for need, asset in PATTERN_PAIRS
]


def clusters_for(phrase: str) -> List[str]:
    """Names of every semantic cluster with a term present in the phrase"""
    if not phrase:
        return []
    text = phrase.lower()
    return [name for name, patterns in _CLUSTER_PATTERNS.items() if any(p.search(text) for p in patterns)]


def shared_cluster(need: str, asset: str) -> Optional[str]:
    """First cluster both phrases belong to, or None"""
    asset_clusters = set(clusters_for(asset))
    for name in clusters_for(need):
        if name in asset_clusters:
            return name
    return None


def is_complementary(need: str, asset: str) -> bool:
    """
    Check whether an asset addresses a need

    Args:
        need: Lower-cased need phrase (or constraint sentence)
        asset: Lower-cased asset phrase

    Returns:
        True when containment, a shared cluster, or a pattern pair matches
    """
    need = (need or '').strip().lower()
    asset = (asset or '').strip().lower()
    if not need or not asset:
        return False

    if need in asset or asset in need:
        return True

    if shared_cluster(need, asset):
        return True

    for need_pattern, asset_pattern in _PAIR_PATTERNS:
        if need_pattern.search(need) and asset_pattern.search(asset):
            return True

    return False


def find_value_exchanges(subject: ProfileFeatures, candidate: ProfileFeatures) -> List[Dict[str, str]]:
    """
    Every asset/need pairing between two attendees, both directions.

    Returns:
        List of {'direction', 'asset', 'need'} where direction is
        'gives' (subject asset -> candidate need) or 'receives'
        (candidate asset -> subject need)
    """
    exchanges = []
    for asset in subject.assets:
        for need in candidate.needs:
            if is_complementary(need, asset):
                exchanges.append({'direction': 'gives', 'asset': asset, 'need': need})
    for asset in candidate.assets:
        for need in subject.needs:
            if is_complementary(need, asset):
                exchanges.append({'direction': 'receives', 'asset': asset, 'need': need})
    return exchanges


def find_constraint_solutions(subject: ProfileFeatures, candidate: ProfileFeatures) -> List[Dict[str, str]]:
    """
    Assets that address the other attendee's stated constraint, both directions.

    Returns:
        List of {'direction', 'asset', 'constraint'}
    """
    solutions = []
    if subject.constraint:
        for asset in candidate.assets:
            if is_complementary(subject.constraint, asset):
                solutions.append({'direction': 'receives', 'asset': asset, 'constraint': subject.constraint})
    if candidate.constraint:
        for asset in subject.assets:
            if is_complementary(candidate.constraint, asset):
                solutions.append({'direction': 'gives', 'asset': asset, 'constraint': candidate.constraint})
    return solutions


def describe_exchange(exchange: Dict[str, str]) -> str:
    """Human-readable evidence string for one exchange"""
    if exchange['direction'] == 'gives':
        return f'Your "{exchange["asset"]}" addresses their need for "{exchange["need"]}"'
    return f'Their "{exchange["asset"]}" addresses your need for "{exchange["need"]}"'
