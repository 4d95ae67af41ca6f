"""
Match Generator - ranks candidates for an attendee and writes their intros

Entry points used by the UI, admin console and seed script:
1. register_member / recompute_embedding (vectors)
2. generate_matches_for_member (rank and rationale for one subject, per tier)
3. get_dashboard / debug_scores (reads)

Tiers share one ranking function driven by config/matching.json:
- top: research the best few candidates, rescore with the research, keep 3
- broader: everyone else with a valid score, synthesis-only intros
"""
import logging
from typing import List, Dict, Optional, Any, Iterable, Set

from config import get_tier_config
from directory_service import DirectoryService, DirectoryError
from embedding_service import (
    EmbeddingError,
    MalformedVectorError,
    cosine_similarity,
    json_to_embedding,
    get_embedding_service,
)
from match_scorer import MatchScorer, ScoreResult
from rationale import Rationale, generate_fallback_rationale
from rich_match_service import RichMatchService, PipelineState
from services.data_validator import DataValidator, ValidationError
from utils.helpers import quality_tier

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DASHBOARD_LIMITS = {'top': 3, 'broader': 30}


class MatchGenerator:
    """Generate attendee intros from database profiles"""

    def __init__(self, directory=None, embedder=None, rich_service=None, scorer=None):
        """
        Args:
            directory: Persistence (DirectoryService or a compatible fake)
            embedder: Object with get_profile_embedding(member); None disables lazy embedding
            rich_service: Rationale orchestrator (RichMatchService)
            scorer: MatchScorer
        """
        self.directory = directory if directory is not None else DirectoryService()
        self.embedder = embedder if embedder is not None else get_embedding_service()
        self.rich_service = rich_service if rich_service is not None else RichMatchService()
        self.scorer = scorer or MatchScorer()

    # ==========================================
    # MEMBERS & VECTORS
    # ==========================================

    def register_member(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate, store and embed a new attendee

        Embedding failure is logged and leaves the vector absent; it never
        fails the registration.

        Returns:
            {'success': True, 'member_id', 'embedded'} or {'success': False, 'error'}
        """
        try:
            DataValidator.validate_member_data(data)
            member = self.directory.create_member(DataValidator.clean_member_data(data))
        except (ValidationError, DirectoryError) as e:
            return {'success': False, 'error': str(e)}

        member_id = member['member_id']
        logger.info(f"Registered member {member_id} ({member.get('name')})")

        embedded = self.recompute_embedding(member_id, member=member)['success']
        return {'success': True, 'member_id': member_id, 'embedded': embedded}

    def recompute_embedding(self, member_id: str, member: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Embed one attendee and overwrite its stored vector

        Returns:
            {'success': True, 'member_id'} or {'success': False, 'member_id', 'error'}
        """
        if self.embedder is None:
            return {'success': False, 'member_id': member_id, 'error': 'Embedding service not available'}

        try:
            member = member or self.directory.get_member(member_id)
            if not member:
                return {'success': False, 'member_id': member_id, 'error': 'Member not found'}
            embedding = self.embedder.get_profile_embedding(member)
            self.directory.save_embedding(member_id, embedding)
        except (EmbeddingError, DirectoryError) as e:
            logger.error(f"Embedding failed for {member_id}: {e}")
            return {'success': False, 'member_id': member_id, 'error': str(e)}

        return {'success': True, 'member_id': member_id}

    def generate_missing_embeddings(self) -> Dict[str, Any]:
        """Embed every member that has no stored vector"""
        try:
            members = self.directory.members_without_embeddings()
        except DirectoryError as e:
            return {'success': False, 'error': str(e)}
        return self._embed_members(members)

    def regenerate_all_embeddings(self) -> Dict[str, Any]:
        """Re-embed every member, overwriting existing vectors"""
        try:
            members = self.directory.list_members()
        except DirectoryError as e:
            return {'success': False, 'error': str(e)}
        return self._embed_members(members)

    def _embed_members(self, members: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not members:
            return {'success': True, 'updated': [], 'failed': [], 'message': 'All members have embeddings'}

        updated, failed = [], []
        for i, member in enumerate(members, start=1):
            result = self.recompute_embedding(member['member_id'], member=member)
            if result['success']:
                updated.append(member['member_id'])
            else:
                failed.append({'member_id': member['member_id'], 'error': result['error']})
            logger.info(f"Embedding progress: {i}/{len(members)}")

        return {'success': True, 'updated': updated, 'failed': failed}

    def _vector_for(self, member: Dict[str, Any]) -> Optional[List[float]]:
        """
        Stored vector for a member, computed and saved on first use

        Raises:
            MalformedVectorError: the stored vector cannot be decoded
        """
        member_id = member.get('member_id')
        vector = json_to_embedding(self.directory.get_embedding(member_id))
        if vector is not None or self.embedder is None:
            return vector

        try:
            vector = self.embedder.get_profile_embedding(member)
        except EmbeddingError as e:
            logger.error(f"Lazy embedding failed for {member_id}, scoring without similarity: {e}")
            return None

        self.directory.save_embedding(member_id, vector)
        return vector

    # ==========================================
    # RANKING
    # ==========================================

    def rank_candidates(
        self,
        subject: Dict[str, Any],
        candidates: Iterable[Dict[str, Any]],
        exclude_ids: Optional[Set[str]] = None,
        scorer: Optional[MatchScorer] = None
    ) -> List[Dict[str, Any]]:
        """
        Score every candidate and sort by total score, highest first

        A candidate whose scoring raises (e.g. a malformed stored vector) is
        logged and left out; the rest of the pool is still ranked. Zero
        scores (self-pairs) are dropped.

        Args:
            subject: Member the intros are for
            candidates: Candidate pool
            exclude_ids: Member IDs to leave out (e.g. already in the top tier)
            scorer: Tier-specific scorer; defaults to self.scorer

        Returns:
            List of {'candidate', 'score' (ScoreResult), 'similarity'}; ties keep pool order
        """
        exclude_ids = exclude_ids or set()
        scorer = scorer or self.scorer

        try:
            subject_vector = self._vector_for(subject)
        except MalformedVectorError as e:
            logger.error(f"Stored vector for subject {subject.get('member_id')} is malformed: {e}")
            subject_vector = None

        scored = []
        attempted = 0
        for candidate in candidates:
            if candidate.get('member_id') in exclude_ids:
                continue
            attempted += 1
            try:
                similarity = cosine_similarity(subject_vector, self._vector_for(candidate))
                score = scorer.score(subject, candidate, similarity)
            except DirectoryError:
                raise
            except Exception as e:
                logger.error(f"Skipping candidate {candidate.get('member_id')}: {e}")
                continue

            if score.total <= 0:
                continue
            scored.append({'candidate': candidate, 'score': score, 'similarity': similarity})

        ranked = sorted(scored, key=lambda m: m['score'].total, reverse=True)
        logger.info(
            f"Ranked candidates for {subject.get('name')}: "
            f"{attempted} scored, {len(ranked)} valid"
        )
        return ranked

    # ==========================================
    # RANK AND RATIONALE
    # ==========================================

    def generate_matches_for_member(self, member_id: str, tier: str = 'top') -> Dict[str, Any]:
        """
        Rank candidates for one attendee and write an intro for each selected match

        Re-running overwrites the intros for the same (member, candidate, tier).

        Args:
            member_id: Subject member ID
            tier: 'top' or 'broader'

        Returns:
            {'success': True, 'tier', 'count', 'matches'} or {'success': False, 'error'}
        """
        try:
            tier_config = get_tier_config(tier)
        except ValueError as e:
            return {'success': False, 'error': str(e)}

        try:
            subject = self.directory.get_member(member_id)
            if not subject:
                return {'success': False, 'error': 'Member not found'}

            exclude_ids = set()
            if tier == 'broader':
                exclude_ids = {i['to_member_id'] for i in self.directory.get_intros(member_id, 'top')}

            scorer = self.scorer.for_tier(tier_config)
            pool = self.directory.list_consenting_members(exclude_id=member_id)
            ranked = self.rank_candidates(subject, pool, exclude_ids, scorer=scorer)
            ranked = [m for m in ranked if m['score'].total >= tier_config.get('min_score', 0)]

            if tier_config.get('deep_research'):
                selected = self._research_and_select(subject, ranked, tier_config, scorer)
            else:
                selected = []
                for match in ranked[:tier_config['limit']]:
                    match['rationale'] = self._rationale_for(subject, match, deep_research=False)
                    selected.append(match)

            logger.info(f"Selected {len(selected)} {tier} matches for {subject.get('name')}")

            matches = []
            for match in selected:
                self.directory.upsert_intro(self._intro_record(member_id, tier, match))
                matches.append(self._match_summary(match))

        except DirectoryError as e:
            return {'success': False, 'error': str(e)}

        return {'success': True, 'tier': tier, 'count': len(matches), 'matches': matches}

    def _research_and_select(
        self,
        subject: Dict[str, Any],
        ranked: List[Dict[str, Any]],
        tier_config: Dict[str, Any],
        scorer: MatchScorer
    ) -> List[Dict[str, Any]]:
        """
        Research the leading candidates in rank order, rescore, re-rank, keep the limit

        Synthesis only runs for the kept matches.
        """
        pool_size = max(tier_config.get('research_pool', 0), tier_config['limit'])
        researched = []

        for match in ranked[:pool_size]:
            candidate = match['candidate']
            match['state'] = None
            try:
                state = self.rich_service.research(subject, candidate, match['score'])
                if state.context.collaboration:
                    match['score'] = scorer.score(
                        subject, candidate, match['similarity'],
                        research=state.context.collaboration
                    )
                match['state'] = state
            except Exception as e:
                logger.error(f"Research crashed for {candidate.get('member_id')}, using fallback: {e}")
            researched.append(match)

        researched.sort(key=lambda m: m['score'].total, reverse=True)
        selected = researched[:tier_config['limit']]

        for match in selected:
            candidate = match['candidate']
            state = match.pop('state')
            if state is None:
                match['rationale'] = generate_fallback_rationale(subject, candidate)
                continue
            try:
                state = self.rich_service.finish(state, subject, candidate, match['score'])
                match['rationale'] = state.rationale
            except Exception as e:
                logger.error(f"Rationale pipeline crashed for {candidate.get('member_id')}, using fallback: {e}")
                match['rationale'] = generate_fallback_rationale(subject, candidate)

        return selected

    def _rationale_for(self, subject: Dict[str, Any], match: Dict[str, Any], deep_research: bool) -> Rationale:
        candidate = match['candidate']
        try:
            state: PipelineState = self.rich_service.generate_rationale(
                subject, candidate, match['score'], deep_research=deep_research
            )
            return state.rationale
        except Exception as e:
            logger.error(f"Rationale pipeline crashed for {candidate.get('member_id')}, using fallback: {e}")
            return generate_fallback_rationale(subject, candidate)

    def _intro_record(self, member_id: str, tier: str, match: Dict[str, Any]) -> Dict[str, Any]:
        score: ScoreResult = match['score']
        rationale: Rationale = match['rationale']
        return {
            'for_member_id': member_id,
            'to_member_id': match['candidate']['member_id'],
            'tier': tier,
            'score': score.total,
            'score_breakdown': score.to_dict(),
            'strategic_rationale': rationale.strategic_rationale,
            'collaboration_angle': rationale.collaboration_angle,
            'conversation_openers': rationale.conversation_openers,
            'rationale_source': rationale.source,
        }

    def _match_summary(self, match: Dict[str, Any]) -> Dict[str, Any]:
        candidate = match['candidate']
        return {
            'member_id': candidate['member_id'],
            'name': candidate.get('name'),
            'org': candidate.get('org'),
            'score': match['score'].total,
            'grade': match['score'].grade,
            'research_applied': match['score'].research_applied,
            'rationale_source': match['rationale'].source,
        }

    # ==========================================
    # READS
    # ==========================================

    def get_dashboard(self, member_id: str) -> Dict[str, Any]:
        """Member plus its top and broader intros, highest score first"""
        try:
            member = self.directory.get_member(member_id)
            if not member:
                return {'success': False, 'error': 'Member not found'}
            top = self.directory.get_intros(member_id, 'top')[:DASHBOARD_LIMITS['top']]
            broader = self.directory.get_intros(member_id, 'broader')[:DASHBOARD_LIMITS['broader']]
        except DirectoryError as e:
            return {'success': False, 'error': str(e)}

        return {'success': True, 'member': member, 'top': top, 'broader': broader}

    def debug_scores(self, member_id: str) -> Dict[str, Any]:
        """
        Full scoring report for one member against every candidate (no AI calls)

        Candidates whose scoring fails appear with 'error' and score 0.
        """
        try:
            subject = self.directory.get_member(member_id)
            if not subject:
                return {'success': False, 'error': 'Member not found'}
            pool = self.directory.list_consenting_members(exclude_id=member_id)
            subject_vector = self._vector_for(subject)
        except MalformedVectorError as e:
            return {'success': False, 'error': f"Stored vector for {member_id} is malformed: {e}"}
        except DirectoryError as e:
            return {'success': False, 'error': str(e)}

        entries = []
        for candidate in pool:
            entry = {
                'member_id': candidate.get('member_id'),
                'name': candidate.get('name'),
                'org': candidate.get('org'),
                'industry': candidate.get('industry'),
            }
            try:
                similarity = cosine_similarity(subject_vector, self._vector_for(candidate))
                score = self.scorer.score(subject, candidate, similarity)
                entry.update(score.to_dict())
                entry['quality_tier'] = quality_tier(score.total)
            except DirectoryError as e:
                return {'success': False, 'error': str(e)}
            except Exception as e:
                logger.error(f"Debug scoring failed for {candidate.get('member_id')}: {e}")
                entry.update({'score': 0, 'error': str(e), 'quality_tier': None})
            entries.append(entry)

        entries.sort(key=lambda e: e['score'], reverse=True)

        distribution = {'excellent': 0, 'strong': 0, 'good': 0, 'moderate': 0, 'baseline': 0}
        for entry in entries:
            if entry.get('quality_tier'):
                distribution[entry['quality_tier']] += 1

        valid_scores = [e['score'] for e in entries if not e.get('error')]
        return {
            'success': True,
            'member': subject,
            'candidates': entries,
            'distribution': distribution,
            'stats': {
                'total_candidates': len(entries),
                'errors': len(entries) - len(valid_scores),
                'max_score': max(valid_scores) if valid_scores else 0,
                'min_score': min(valid_scores) if valid_scores else 0,
                'avg_score': round(sum(valid_scores) / len(valid_scores), 1) if valid_scores else 0,
            },
        }
