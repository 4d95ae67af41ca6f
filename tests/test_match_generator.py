"""
Tests for candidate ranking and the rank-and-rationale entry points
"""

import logging

import pytest

from conftest import FakeDirectory, FakeEmbedder, FakeTextGenerator
from embedding_service import EmbeddingError
from match_generator import MatchGenerator
from match_scorer import MatchScorer, ScoreCategory, ScoreResult
from rationale import generate_fallback_rationale
from rich_match_service import RichMatchService


@pytest.fixture
def generator(fake_directory, fake_embedder, fake_generator):
    return MatchGenerator(
        directory=fake_directory,
        embedder=fake_embedder,
        rich_service=RichMatchService(llm_client=fake_generator),
        scorer=MatchScorer(),
    )


class ExplodingScorer(MatchScorer):
    """Raises for one candidate"""

    def __init__(self, bad_id):
        super().__init__()
        self.bad_id = bad_id

    def score(self, subject, candidate, similarity, research=None):
        if candidate.get('member_id') == self.bad_id:
            raise ValueError('corrupt profile')
        return super().score(subject, candidate, similarity, research)


class ConstantScorer(MatchScorer):
    def score(self, subject, candidate, similarity, research=None):
        return ScoreResult(total=50, categories=[ScoreCategory('baseline', 'Baseline', 50, 50, 'flat')])


class FailingEmbedder:
    def get_profile_embedding(self, member):
        raise EmbeddingError('Embedding request failed: quota exceeded')


class CrashingRichService:
    def research(self, *args, **kwargs):
        raise RuntimeError('unexpected')

    def generate_rationale(self, *args, **kwargs):
        raise RuntimeError('unexpected')


def intros_for(directory, member_id, tier):
    return [i for (for_id, _, t), i in directory.intros.items() if for_id == member_id and t == tier]


class TestRankCandidates:
    """Scoring, filtering and ordering of a candidate pool"""

    def test_sorted_descending(self, generator, fake_directory, members):
        pool = fake_directory.list_consenting_members(exclude_id='member-alice')
        ranked = generator.rank_candidates(members['alice'], pool)
        totals = [m['score'].total for m in ranked]
        assert len(ranked) == 4
        assert totals == sorted(totals, reverse=True)

    def test_poisoned_vector_excluded(self, generator, fake_directory, members, caplog):
        fake_directory.vectors['member-carol'] = 'not json'
        pool = fake_directory.list_consenting_members(exclude_id='member-alice')

        with caplog.at_level(logging.ERROR, logger='match_generator'):
            ranked = generator.rank_candidates(members['alice'], pool)

        assert len(ranked) == len(pool) - 1
        assert 'member-carol' not in {m['candidate']['member_id'] for m in ranked}
        assert 'member-carol' in caplog.text

    def test_scoring_error_excluded(self, fake_directory, fake_embedder, fake_generator, members):
        generator = MatchGenerator(
            directory=fake_directory,
            embedder=fake_embedder,
            rich_service=RichMatchService(llm_client=fake_generator),
            scorer=ExplodingScorer('member-dan'),
        )
        pool = fake_directory.list_consenting_members(exclude_id='member-alice')
        ranked = generator.rank_candidates(members['alice'], pool)
        assert len(ranked) == 3

    def test_self_pair_dropped(self, generator, members):
        assert generator.rank_candidates(members['alice'], [members['alice']]) == []

    def test_ties_keep_pool_order(self, fake_directory, fake_embedder, fake_generator):
        generator = MatchGenerator(
            directory=fake_directory,
            embedder=fake_embedder,
            rich_service=RichMatchService(llm_client=fake_generator),
            scorer=ConstantScorer(),
        )
        pool = fake_directory.list_consenting_members(exclude_id='member-alice')
        ranked = generator.rank_candidates(fake_directory.members['member-alice'], pool)
        assert [m['candidate']['member_id'] for m in ranked] == [m['member_id'] for m in pool]

    def test_exclude_ids(self, generator, fake_directory, members):
        pool = fake_directory.list_consenting_members(exclude_id='member-alice')
        ranked = generator.rank_candidates(members['alice'], pool, exclude_ids={'member-bob'})
        assert 'member-bob' not in {m['candidate']['member_id'] for m in ranked}

    def test_lazy_embedding(self, generator, fake_directory, members):
        pool = fake_directory.list_consenting_members(exclude_id='member-alice')
        generator.rank_candidates(members['alice'], pool)
        assert set(fake_directory.vectors) == {'member-alice', 'member-bob', 'member-carol', 'member-dan', 'member-erin'}

    def test_stored_vector_reused(self, generator, fake_directory, fake_embedder, members):
        fake_directory.vectors['member-alice'] = '[1.0, 0.0, 0.0]'
        generator.rank_candidates(members['alice'], [members['bob']])
        assert 'member-alice' not in fake_embedder.calls

    def test_embedding_failure_scores_without_similarity(self, fake_directory, fake_generator, members, caplog):
        generator = MatchGenerator(
            directory=fake_directory,
            embedder=FakeEmbedder(fail_for={'member-dan'}),
            rich_service=RichMatchService(llm_client=fake_generator),
        )
        pool = fake_directory.list_consenting_members(exclude_id='member-alice')

        with caplog.at_level(logging.ERROR, logger='match_generator'):
            ranked = generator.rank_candidates(members['alice'], pool)

        assert len(ranked) == 4
        dan = next(m for m in ranked if m['candidate']['member_id'] == 'member-dan')
        assert dan['similarity'] == 0.0
        assert 'member-dan' not in fake_directory.vectors
        assert 'Lazy embedding failed for member-dan' in caplog.text


class TestGenerateTop:
    """Top tier: research, rescore, keep three"""

    def test_top_three(self, generator, fake_directory):
        result = generator.generate_matches_for_member('member-alice', 'top')

        assert result['success']
        assert result['count'] == 3
        assert len(intros_for(fake_directory, 'member-alice', 'top')) == 3
        scores = [m['score'] for m in result['matches']]
        assert scores == sorted(scores, reverse=True)

    def test_research_feeds_scoring(self, generator, fake_directory, fake_generator):
        generator.generate_matches_for_member('member-alice', 'top')

        # every candidate in the pool of 4 is researched before selection
        assert fake_generator.stages_called.count('industry_research') == 4
        for intro in intros_for(fake_directory, 'member-alice', 'top'):
            breakdown = {c['key']: c for c in intro['score_breakdown']['breakdown']}
            assert breakdown['complementary']['points'] >= 16
            assert intro['rationale_source'] == 'ai'

    def test_idempotent(self, generator, fake_directory):
        generator.generate_matches_for_member('member-alice', 'top')
        first_keys = set(fake_directory.intros)
        generator.generate_matches_for_member('member-alice', 'top')
        assert set(fake_directory.intros) == first_keys

    def test_synthesis_only_for_kept_matches(self, generator, fake_generator):
        result = generator.generate_matches_for_member('member-alice', 'top')

        assert fake_generator.stages_called.count('collaboration_research') == 4
        assert fake_generator.stages_called.count('synthesis') == result['count'] == 3

    def test_synthesis_sees_rescored_breakdown(self, generator, fake_directory, fake_generator):
        generator.generate_matches_for_member('member-alice', 'top')

        synthesis_prompts = [c['user_prompt'] for c in fake_generator.calls if c['stage'] == 'synthesis']
        for intro in intros_for(fake_directory, 'member-alice', 'top'):
            assert any(f"Total: {intro['score']}/100" in p for p in synthesis_prompts)

    def test_regenerate_keeps_acknowledged(self, generator, fake_directory):
        generator.generate_matches_for_member('member-alice', 'top')
        intro = intros_for(fake_directory, 'member-alice', 'top')[0]
        fake_directory.acknowledge_intro(intro['intro_id'])

        generator.generate_matches_for_member('member-alice', 'top')

        key = (intro['for_member_id'], intro['to_member_id'], 'top')
        assert fake_directory.intros[key]['status'] == 'acknowledged'
        others = [i for i in intros_for(fake_directory, 'member-alice', 'top') if i['intro_id'] != intro['intro_id']]
        assert all(i['status'] == 'draft' for i in others)

    def test_tier_semantic_override(self, generator, fake_directory, monkeypatch):
        monkeypatch.setattr('match_generator.get_tier_config', lambda tier: {
            'limit': 30, 'min_score': 0, 'semantic_max_points': 8,
            'research_pool': 0, 'deep_research': False,
        })
        generator.generate_matches_for_member('member-alice', 'broader')

        intros = intros_for(fake_directory, 'member-alice', 'broader')
        assert intros
        for intro in intros:
            semantic = next(c for c in intro['score_breakdown']['breakdown'] if c['key'] == 'semantic')
            assert semantic['max_points'] == 8
            assert semantic['points'] <= 8
        assert generator.scorer.weights.semantic_max_points == 20

    def test_always_timeout_uses_fallback(self, fake_directory, fake_embedder):
        generator = MatchGenerator(
            directory=fake_directory,
            embedder=fake_embedder,
            rich_service=RichMatchService(llm_client=FakeTextGenerator(always_timeout=True)),
        )
        generator.generate_matches_for_member('member-alice', 'top')

        intros = intros_for(fake_directory, 'member-alice', 'top')
        assert intros
        subject = fake_directory.members['member-alice']
        for intro in intros:
            expected = generate_fallback_rationale(subject, fake_directory.members[intro['to_member_id']])
            assert intro['strategic_rationale'] == expected.strategic_rationale
            assert intro['collaboration_angle'] == expected.collaboration_angle
            assert intro['conversation_openers'] == expected.conversation_openers
            assert intro['rationale_source'] == 'fallback'

    def test_pipeline_crash_uses_fallback(self, fake_directory, fake_embedder):
        generator = MatchGenerator(
            directory=fake_directory,
            embedder=fake_embedder,
            rich_service=CrashingRichService(),
        )
        result = generator.generate_matches_for_member('member-alice', 'top')
        assert result['success']
        assert all(m['rationale_source'] == 'fallback' for m in result['matches'])

    def test_self_only_returns_empty(self, members, fake_embedder, fake_generator):
        directory = FakeDirectory([members['alice']])
        generator = MatchGenerator(
            directory=directory,
            embedder=fake_embedder,
            rich_service=RichMatchService(llm_client=fake_generator),
        )
        result = generator.generate_matches_for_member('member-alice', 'top')
        assert result == {'success': True, 'tier': 'top', 'count': 0, 'matches': []}
        assert directory.intros == {}


class TestGenerateBroader:
    """Broader tier: everyone else, synthesis only"""

    def test_excludes_top(self, generator, fake_directory):
        generator.generate_matches_for_member('member-alice', 'top')
        result = generator.generate_matches_for_member('member-alice', 'broader')

        top_ids = {i['to_member_id'] for i in intros_for(fake_directory, 'member-alice', 'top')}
        broader_ids = {i['to_member_id'] for i in intros_for(fake_directory, 'member-alice', 'broader')}
        assert result['success']
        assert result['count'] == 1
        assert top_ids.isdisjoint(broader_ids)

    def test_synthesis_only(self, generator, fake_generator):
        generator.generate_matches_for_member('member-alice', 'broader')
        assert set(fake_generator.stages_called) == {'synthesis'}
        assert len(fake_generator.stages_called) == 4

    def test_non_consenting_never_suggested(self, generator, fake_directory):
        generator.generate_matches_for_member('member-alice', 'broader')
        ids = {i['to_member_id'] for i in intros_for(fake_directory, 'member-alice', 'broader')}
        assert 'member-quiet' not in ids


class TestEntryPointErrors:
    """Result-dict failures"""

    def test_unknown_tier(self, generator):
        result = generator.generate_matches_for_member('member-alice', 'everyone')
        assert result == {'success': False, 'error': 'Unknown tier: everyone'}

    def test_member_not_found(self, generator):
        result = generator.generate_matches_for_member('member-nobody', 'top')
        assert result == {'success': False, 'error': 'Member not found'}

    def test_database_down(self, generator, fake_directory):
        fake_directory.fail = True
        result = generator.generate_matches_for_member('member-alice', 'top')
        assert not result['success']
        assert 'connection refused' in result['error']
        assert not generator.get_dashboard('member-alice')['success']


class TestRegistration:
    """register_member and embeddings"""

    def test_register(self, generator, fake_directory, members):
        data = {k: v for k, v in members['alice'].items() if k != 'member_id'}
        result = generator.register_member(data)

        assert result['success']
        assert result['embedded']
        assert result['member_id'] in fake_directory.members
        assert result['member_id'] in fake_directory.vectors

    def test_invalid_payload(self, generator):
        result = generator.register_member({'name': 'No Org', 'role': 'CEO', 'industry': 'Tech', 'city': 'Austin'})
        assert result == {'success': False, 'error': 'Missing required field: org'}

    def test_embedding_failure_does_not_fail_registration(self, fake_directory, fake_generator, members):
        generator = MatchGenerator(
            directory=fake_directory,
            embedder=FailingEmbedder(),
            rich_service=RichMatchService(llm_client=fake_generator),
        )
        data = {k: v for k, v in members['bob'].items() if k != 'member_id'}
        result = generator.register_member(data)
        assert result['success']
        assert not result['embedded']

    def test_recompute_missing_member(self, generator):
        result = generator.recompute_embedding('member-nobody')
        assert not result['success']
        assert result['error'] == 'Member not found'

    def test_generate_missing_embeddings(self, fake_directory, fake_generator):
        fake_directory.vectors['member-alice'] = '[1.0, 0.0]'
        embedder = FakeEmbedder(fail_for={'member-dan'})
        generator = MatchGenerator(
            directory=fake_directory,
            embedder=embedder,
            rich_service=RichMatchService(llm_client=fake_generator),
        )
        result = generator.generate_missing_embeddings()

        assert result['success']
        assert set(result['updated']) == {'member-bob', 'member-carol', 'member-erin', 'member-quiet'}
        assert [f['member_id'] for f in result['failed']] == ['member-dan']
        assert 'member-alice' not in embedder.calls

    def test_regenerate_all_embeddings(self, generator, fake_directory, fake_embedder):
        fake_directory.vectors['member-alice'] = '[9.0, 9.0, 9.0]'
        result = generator.regenerate_all_embeddings()
        assert len(result['updated']) == 6
        assert fake_directory.vectors['member-alice'] == '[1.0, 0.2, 0.0]'


class TestReads:
    """Dashboard and scoring debug report"""

    def test_dashboard(self, generator):
        generator.generate_matches_for_member('member-alice', 'top')
        generator.generate_matches_for_member('member-alice', 'broader')

        dashboard = generator.get_dashboard('member-alice')

        assert dashboard['success']
        assert dashboard['member']['name'] == 'Alice Park'
        assert len(dashboard['top']) == 3
        assert len(dashboard['broader']) == 1
        top_scores = [i['score'] for i in dashboard['top']]
        assert top_scores == sorted(top_scores, reverse=True)
        assert dashboard['top'][0]['candidate']['name']

    def test_dashboard_unknown_member(self, generator):
        assert generator.get_dashboard('member-nobody') == {'success': False, 'error': 'Member not found'}

    def test_debug_scores(self, generator, fake_directory, fake_generator):
        fake_directory.vectors['member-carol'] = '{"bad": true}'
        report = generator.debug_scores('member-alice')

        assert report['success']
        assert report['stats']['total_candidates'] == 4
        assert report['stats']['errors'] == 1
        carol = next(e for e in report['candidates'] if e['member_id'] == 'member-carol')
        assert carol['score'] == 0
        assert 'expected a list' in carol['error']
        assert sum(report['distribution'].values()) == 3
        assert fake_generator.calls == []
