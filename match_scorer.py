"""
Match Scorer - 100-point composite compatibility score for an attendee pair

Categories (default budgets, tunable through config/matching.json):
- Baseline potential: 30 (every valid pair)
- Semantic similarity: 0-20 (embedding cosine similarity)
- Complementary value exchange: 0-20 (need/asset and constraint/asset hits)
- Market alignment: 0-15 (business model, seniority, track record)
- Geographic proximity: 0-10
- Industry synergy: 0-5
"""
import copy
import math
from dataclasses import dataclass, field, asdict, fields, replace
from typing import Dict, List, Optional, Any, Iterable, Tuple

from config import get_scoring_weights, get_industry_synergy
from profile_features import ProfileFeatures, extract_features
from semantic_matcher import find_value_exchanges, find_constraint_solutions, describe_exchange
from utils.helpers import (
    is_decision_maker,
    is_founder,
    detect_business_models,
    has_established_signal,
    score_grade,
)

MAX_TOTAL_POINTS = 100


@dataclass(frozen=True)
class ScoringWeights:
    baseline_points: int = 30
    semantic_max_points: int = 20
    complementary_max_points: int = 20
    points_per_match: int = 5
    constraint_match_points: int = 3
    market_max_points: int = 15
    same_model_points: int = 5
    complementary_model_points: int = 3
    both_founders_points: int = 5
    both_established_points: int = 3
    one_established_points: int = 2
    both_constrained_points: int = 2
    location_max_points: int = 10
    location_remote_points: int = 3
    location_unknown_points: int = 2
    industry_max_points: int = 5
    industry_pair_points: int = 5
    cross_industry_points: int = 3
    same_industry_default_points: int = 2
    research_idea_points: int = 4
    research_rating_points: Dict[str, int] = field(
        default_factory=lambda: {'high': 16, 'medium': 10, 'low': 4}
    )

    @classmethod
    def from_config(cls, overrides: Optional[Dict[str, Any]] = None) -> 'ScoringWeights':
        """Build weights from config/matching.json, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in get_scoring_weights().items() if k in known}
        if overrides:
            values.update({k: v for k, v in overrides.items() if k in known})
        return cls(**values)

    def for_tier(self, tier_config: Dict[str, Any]) -> 'ScoringWeights':
        """Apply a tier's semantic_max_points override, if it has one"""
        if tier_config and tier_config.get('semantic_max_points') is not None:
            return replace(self, semantic_max_points=int(tier_config['semantic_max_points']))
        return self


@dataclass
class ScoreCategory:
    key: str
    label: str
    points: int
    max_points: int
    justification: str
    evidence: List[str] = field(default_factory=list)

    @property
    def percentage(self) -> int:
        if not self.max_points:
            return 0
        return round(self.points / self.max_points * 100)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['percentage'] = self.percentage
        return data


@dataclass
class ScoreResult:
    total: int
    categories: List[ScoreCategory] = field(default_factory=list)
    similarity: float = 0.0
    research_applied: bool = False

    @property
    def percentage(self) -> int:
        return round(self.total / MAX_TOTAL_POINTS * 100)

    @property
    def grade(self) -> str:
        if not self.categories:
            return 'N/A'
        return score_grade(self.percentage)

    def category(self, key: str) -> Optional[ScoreCategory]:
        for category in self.categories:
            if category.key == key:
                return category
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            'earned': self.total,
            'possible': MAX_TOTAL_POINTS,
            'percentage': self.percentage,
            'grade': self.grade,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serializable breakdown stored alongside an intro"""
        return {
            'score': self.total,
            'similarity': round(self.similarity, 4),
            'research_applied': self.research_applied,
            'breakdown': [c.to_dict() for c in self.categories],
            'summary': self.summary(),
        }


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _pair_key(a: str, b: str) -> frozenset:
    return frozenset((a.strip().lower(), b.strip().lower()))


class MatchScorer:
    """Deterministic multi-factor scorer. Holds no mutable state between calls."""

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        high_value_pairs: Optional[Iterable[Iterable[str]]] = None,
        same_industry_points: Optional[Dict[str, int]] = None
    ):
        self.weights = weights or ScoringWeights.from_config()

        if high_value_pairs is None or same_industry_points is None:
            synergy = get_industry_synergy()
            if high_value_pairs is None:
                high_value_pairs = synergy.get('high_value_pairs', [])
            if same_industry_points is None:
                same_industry_points = synergy.get('same_industry_points', {})

        self.high_value_pairs = {_pair_key(*pair) for pair in high_value_pairs}
        self.same_industry_points = {k.lower(): v for k, v in same_industry_points.items()}

    def for_tier(self, tier_config: Dict[str, Any]) -> 'MatchScorer':
        """Scorer with the tier's weight overrides applied (self when nothing changes)"""
        weights = self.weights.for_tier(tier_config)
        if weights == self.weights:
            return self
        scorer = copy.copy(self)
        scorer.weights = weights
        return scorer

    def score(
        self,
        subject: Dict[str, Any],
        candidate: Dict[str, Any],
        similarity: Optional[float],
        research: Optional[Dict[str, Any]] = None
    ) -> ScoreResult:
        """
        Score a (subject, candidate) pair

        Args:
            subject: Member the intro is for
            candidate: Member being suggested
            similarity: Cosine similarity of their vectors (None when either is missing)
            research: Optional collaboration research; can raise, never lower,
                the complementary value category

        Returns:
            ScoreResult; total 0 with an empty breakdown for a self-pair
        """
        s = extract_features(subject)
        c = extract_features(candidate)

        if subject is candidate or (s.member_id and s.member_id == c.member_id):
            return ScoreResult(total=0, categories=[], similarity=0.0)

        if similarity is None or not isinstance(similarity, (int, float)) or math.isnan(similarity):
            similarity = 0.0

        complementary, research_applied = self._complementary_category(s, c, research)
        categories = [
            self._baseline_category(s, c),
            self._semantic_category(similarity),
            complementary,
            self._market_category(s, c),
            self._location_category(s, c),
            self._industry_category(s, c),
        ]

        total = _clamp(sum(cat.points for cat in categories), 0, MAX_TOTAL_POINTS)
        return ScoreResult(
            total=total,
            categories=categories,
            similarity=float(similarity),
            research_applied=research_applied
        )

    # ==========================================
    # CATEGORIES
    # ==========================================

    def _baseline_category(self, s: ProfileFeatures, c: ProfileFeatures) -> ScoreCategory:
        subject_senior = is_decision_maker(s.role)
        candidate_senior = is_decision_maker(c.role)
        if subject_senior and candidate_senior:
            seniority = 'Both are decision-makers who can commit to a partnership on the spot'
        elif subject_senior or candidate_senior:
            seniority = 'Decision-maker meets specialist: one brings authority, the other hands-on depth'
        else:
            seniority = 'Peer specialists who can trade practical know-how'

        if s.constraint and c.constraint:
            constraints = 'both have named a current constraint to work on'
        elif s.constraint or c.constraint:
            constraints = 'one side has named a concrete constraint to solve'
        else:
            constraints = 'neither has named a constraint, so the conversation can stay exploratory'

        return ScoreCategory(
            key='baseline',
            label='Baseline Networking Potential',
            points=self.weights.baseline_points,
            max_points=self.weights.baseline_points,
            justification=f"{seniority}; {constraints}.",
        )

    def _semantic_category(self, similarity: float) -> ScoreCategory:
        max_points = self.weights.semantic_max_points
        points = _clamp(round(max(0.0, similarity) * max_points), 0, max_points)
        if points > max_points * 0.7:
            strength = 'Strong'
        elif points > max_points * 0.4:
            strength = 'Moderate'
        else:
            strength = 'Complementary (low overlap)'
        return ScoreCategory(
            key='semantic',
            label='Semantic Profile Similarity',
            points=points,
            max_points=max_points,
            justification=f"{strength} profile overlap from embedding similarity {similarity:.4f}",
        )

    def research_points(self, research: Optional[Dict[str, Any]]) -> int:
        """Point signal from a collaboration research result (0 when absent or malformed)"""
        if not isinstance(research, dict):
            return 0
        ideas = research.get('creative_ideas')
        idea_count = len(ideas) if isinstance(ideas, list) else 0
        rating = str(research.get('synergy_rating') or '').strip().lower()
        rating_points = self.weights.research_rating_points.get(rating, 0)
        points = max(idea_count * self.weights.research_idea_points, rating_points)
        return _clamp(points, 0, self.weights.complementary_max_points)

    def _complementary_category(
        self,
        s: ProfileFeatures,
        c: ProfileFeatures,
        research: Optional[Dict[str, Any]]
    ) -> Tuple[ScoreCategory, bool]:
        max_points = self.weights.complementary_max_points
        exchanges = find_value_exchanges(s, c)
        solutions = find_constraint_solutions(s, c)

        keyword_points = min(
            len(exchanges) * self.weights.points_per_match
            + len(solutions) * self.weights.constraint_match_points,
            max_points
        )
        evidence = [describe_exchange(e) for e in exchanges[:3]]
        for solution in solutions[:2]:
            if solution['direction'] == 'receives':
                evidence.append(f'Their "{solution["asset"]}" speaks to your constraint')
            else:
                evidence.append(f'Your "{solution["asset"]}" speaks to their constraint')

        if exchanges or solutions:
            justification = (
                f"{len(exchanges)} asset/need alignment{'s' if len(exchanges) != 1 else ''}"
                f" and {len(solutions)} constraint solution{'s' if len(solutions) != 1 else ''} identified"
            )
        else:
            justification = 'Potential for creative collaboration beyond explicit needs and assets'

        points = keyword_points
        boosted = self.research_points(research)
        research_applied = boosted > keyword_points
        if research_applied:
            points = boosted
            justification += '; raised by collaboration research'
            rating = research.get('synergy_rating')
            if rating:
                evidence.append(f"Research: {rating} synergy rating")
            ideas = research.get('creative_ideas')
            for idea in (ideas if isinstance(ideas, list) else [])[:2]:
                evidence.append(f"Research: {idea}")

        return ScoreCategory(
            key='complementary',
            label='Complementary Value Exchange',
            points=points,
            max_points=max_points,
            justification=justification,
            evidence=evidence,
        ), research_applied

    def _market_category(self, s: ProfileFeatures, c: ProfileFeatures) -> ScoreCategory:
        w = self.weights
        points = 0
        insights = []

        models_s = detect_business_models(s.revenue_driver)
        models_c = detect_business_models(c.revenue_driver)
        if models_s & models_c:
            points += w.same_model_points
            insights.append('Similar business model (both B2B or both B2C)')
        elif ('B2B' in models_s and 'B2C' in models_c) or ('B2C' in models_s and 'B2B' in models_c):
            points += w.complementary_model_points
            insights.append('Complementary business models that can learn from each other')

        if is_founder(s.role) and is_founder(c.role):
            points += w.both_founders_points
            insights.append('Both founders/CEOs with a shared leadership perspective')

        established_s = has_established_signal(s.fun_fact) or has_established_signal(s.revenue_driver)
        established_c = has_established_signal(c.fun_fact) or has_established_signal(c.revenue_driver)
        if established_s and established_c:
            points += w.both_established_points
            insights.append('Both have proven track records')
        elif established_s or established_c:
            points += w.one_established_points
            insights.append('Mentorship opportunity across different growth stages')

        if s.constraint and c.constraint:
            points += w.both_constrained_points
            insights.append('Both actively working through growth constraints')

        return ScoreCategory(
            key='market',
            label='Market Alignment',
            points=min(points, w.market_max_points),
            max_points=w.market_max_points,
            justification='Inferred compatibility from business model, scale and growth stage',
            evidence=insights,
        )

    def _location_category(self, s: ProfileFeatures, c: ProfileFeatures) -> ScoreCategory:
        w = self.weights
        if s.city_key and c.city_key:
            if s.city_key == c.city_key:
                points = w.location_max_points
                justification = f"Both based in {s.city}, easy to meet in person"
            else:
                points = w.location_remote_points
                justification = f"Different cities ({s.city} / {c.city}), remote collaboration"
        else:
            points = w.location_unknown_points
            justification = 'Location not stated for both, collaboration can be remote'

        return ScoreCategory(
            key='location',
            label='Geographic Proximity',
            points=min(points, w.location_max_points),
            max_points=w.location_max_points,
            justification=justification,
        )

    def _industry_category(self, s: ProfileFeatures, c: ProfileFeatures) -> ScoreCategory:
        w = self.weights
        if not s.industry_key or not c.industry_key:
            points = 0
            justification = 'Industry not stated for both'
        elif s.industry_key == c.industry_key:
            points = self.same_industry_points.get(s.industry_key, w.same_industry_default_points)
            justification = f"Shared industry expertise in {s.industry}"
        elif _pair_key(s.industry, c.industry) in self.high_value_pairs:
            points = w.industry_pair_points
            justification = f"High-value industry pairing: {s.industry} x {c.industry}"
        else:
            points = w.cross_industry_points
            justification = f"Cross-industry perspective: {s.industry} x {c.industry}"

        return ScoreCategory(
            key='industry',
            label='Industry Synergy',
            points=_clamp(points, 0, w.industry_max_points),
            max_points=w.industry_max_points,
            justification=justification,
        )
