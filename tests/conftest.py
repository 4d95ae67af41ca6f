"""
Shared fixtures and in-memory fakes for the networking matcher tests
"""

import copy
import json
import os
import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from directory_service import DirectoryError
from embedding_service import EmbeddingError
from llm_client import AITimeoutError, validate_fields


def load_fixture(filename):
    """Load test fixture"""
    fixture_path = Path(__file__).parent / 'fixtures' / filename
    with open(fixture_path, 'r') as f:
        return json.load(f)


@pytest.fixture
def members():
    """Attendee profiles keyed by first name"""
    return load_fixture('members.json')


class FakeDirectory:
    """In-memory stand-in for DirectoryService"""

    def __init__(self, members=None):
        self.members = {}
        self.vectors = {}
        self.intros = {}
        self.fail = False
        self._intro_counter = 0
        for member in members or []:
            self.members[member['member_id']] = copy.deepcopy(member)

    def _check(self):
        if self.fail:
            raise DirectoryError("Failed to reach database: connection refused")

    def create_member(self, data):
        self._check()
        record = dict(data)
        record.setdefault('member_id', f"member-{len(self.members) + 1}")
        self.members[record['member_id']] = record
        return record

    def get_member(self, member_id):
        self._check()
        return self.members.get(member_id)

    def list_members(self):
        self._check()
        return list(self.members.values())

    def list_consenting_members(self, exclude_id=None):
        self._check()
        return [
            m for m in self.members.values()
            if m.get('consent', True) and m['member_id'] != exclude_id
        ]

    def get_embedding(self, member_id):
        self._check()
        return self.vectors.get(member_id)

    def save_embedding(self, member_id, embedding):
        self._check()
        self.vectors[member_id] = json.dumps(embedding)

    def members_without_embeddings(self):
        self._check()
        return [m for m in self.members.values() if not self.vectors.get(m['member_id'])]

    def upsert_intro(self, intro):
        self._check()
        key = (intro['for_member_id'], intro['to_member_id'], intro['tier'])
        existing = self.intros.get(key)
        if existing:
            intro_id = existing['intro_id']
        else:
            self._intro_counter += 1
            intro_id = f"intro-{self._intro_counter}"
        # Conflict update leaves status alone; inserts take the 'draft' default
        payload = {k: v for k, v in intro.items() if k != 'status'}
        record = {**(existing or {'status': 'draft'}), **payload, 'intro_id': intro_id}
        self.intros[key] = record
        return record

    def get_intros(self, member_id, tier=None):
        self._check()
        rows = []
        for (for_id, _, row_tier), intro in self.intros.items():
            if for_id != member_id or (tier and row_tier != tier):
                continue
            row = dict(intro)
            row['candidate'] = self.members.get(intro['to_member_id'])
            row['score_breakdown_parsed'] = intro.get('score_breakdown')
            rows.append(row)
        return sorted(rows, key=lambda r: r['score'], reverse=True)

    def acknowledge_intro(self, intro_id):
        self._check()
        for intro in self.intros.values():
            if intro['intro_id'] == intro_id:
                intro['status'] = 'acknowledged'
                return intro
        raise DirectoryError(f"Intro not found: {intro_id}")


class FakeEmbedder:
    """Returns fixed vectors per member; member IDs in fail_for raise EmbeddingError"""

    def __init__(self, vectors=None, default=None, fail_for=None):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0, 0.0]
        self.fail_for = set(fail_for or [])
        self.calls = []

    def get_profile_embedding(self, member):
        member_id = member.get('member_id')
        self.calls.append(member_id)
        if member_id in self.fail_for:
            raise EmbeddingError("Embedding request failed: quota exceeded")
        return list(self.vectors.get(member_id, self.default))


STAGE_KEYS = {
    'subject_industry_trends': 'industry_research',
    'subject_summary': 'entity_research',
    'creative_ideas': 'collaboration_research',
    'strategic_rationale': 'synthesis',
}

DEFAULT_RESPONSES = {
    'industry_research': {
        'subject_industry_trends': ['AI adoption', 'Usage-based pricing', 'Vertical SaaS'],
        'candidate_industry_trends': ['Short-form video', 'Creator partnerships', 'First-party data'],
        'cross_industry_insight': 'Agencies need data products and data companies need distribution.',
    },
    'entity_research': {
        'subject_summary': 'A fast-growing analytics startup.',
        'candidate_summary': 'A boutique agency with retail clients.',
        'notable_signals': ['Recent seed round'],
    },
    'collaboration_research': {
        'creative_ideas': ['Co-branded benchmark report', 'Joint webinar series'],
        'synergy_rating': 'High',
        'direct_fit': 'Their branding work addresses your awareness problem.',
    },
    'synthesis': {
        'strategic_rationale': 'You should connect with them because their agency can launch your brand.',
        'collaboration_angle': 'Co-author a quarterly retail benchmark report.',
        'conversation_openers': '1. Ask about their retail clients. 2. Pitch the report. 3. Swap founder stories.',
    },
}


class FakeTextGenerator:
    """
    Stand-in for OpenAIJSONClient.

    responses maps stage name -> dict to return, or an exception instance
    to raise. Responses go through the same required-field validation as
    the real client.
    """

    def __init__(self, responses=None, always_timeout=False):
        self.responses = {**DEFAULT_RESPONSES, **(responses or {})}
        self.always_timeout = always_timeout
        self.calls = []

    def generate(self, system_prompt, user_prompt, required_fields, temperature=0.7, timeout=60.0):
        stage = next(STAGE_KEYS[k] for k in required_fields if k in STAGE_KEYS)
        self.calls.append({
            'stage': stage,
            'system_prompt': system_prompt,
            'user_prompt': user_prompt,
            'temperature': temperature,
            'timeout': timeout,
        })

        if self.always_timeout:
            raise AITimeoutError(f"OpenAI API timeout after {timeout:.0f} seconds")

        response = self.responses[stage]
        if isinstance(response, Exception):
            raise response
        return validate_fields(copy.deepcopy(response), required_fields)

    @property
    def stages_called(self):
        return [c['stage'] for c in self.calls]


@pytest.fixture
def fake_directory(members):
    return FakeDirectory([members[k] for k in ('alice', 'bob', 'carol', 'dan', 'erin', 'quiet')])


@pytest.fixture
def fake_embedder():
    return FakeEmbedder(vectors={
        'member-alice': [1.0, 0.2, 0.0],
        'member-bob': [0.9, 0.3, 0.1],
        'member-carol': [0.0, 1.0, 0.0],
        'member-dan': [0.2, 0.1, 1.0],
        'member-erin': [0.5, 0.5, 0.5],
    })


@pytest.fixture
def fake_generator():
    return FakeTextGenerator()
