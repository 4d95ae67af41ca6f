"""
Tests for vector similarity, vector storage format and the embedding wrapper
"""

from types import SimpleNamespace

import pytest
from openai import OpenAIError

from embedding_service import (
    EmbeddingService,
    EmbeddingError,
    MalformedVectorError,
    cosine_similarity,
    embedding_to_json,
    json_to_embedding,
)


class FakeEmbeddingsAPI:
    def __init__(self, vector=None, error=None):
        self.vector = vector if vector is not None else [0.1, 0.2, 0.3]
        self.error = error
        self.inputs = []

    def create(self, model, input):
        self.inputs.append((model, input))
        if self.error:
            raise self.error
        return SimpleNamespace(data=[SimpleNamespace(embedding=self.vector)])


def fake_openai(**kwargs):
    return SimpleNamespace(embeddings=FakeEmbeddingsAPI(**kwargs))


class TestCosineSimilarity:
    """cosine_similarity is total"""

    @pytest.mark.parametrize('vector', [[1.0, 2.0, 3.0], [0.5, -0.25], [1e-8, 3.0, -7.5, 2.0]])
    def test_identical_vectors(self, vector):
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_zero_vector(self):
        assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite(self):
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    @pytest.mark.parametrize('a, b', [
        (None, [1.0]),
        ([1.0], None),
        ([], []),
        ([1.0, 2.0], [1.0]),
        ([1.0, 'x'], [1.0, 2.0]),
    ])
    def test_degenerate_input(self, a, b):
        assert cosine_similarity(a, b) == 0.0


class TestVectorStorage:
    """Stored vectors are either absent or a complete list of numbers"""

    def test_round_trip(self):
        assert json_to_embedding(embedding_to_json([0.5, 1, -2.25])) == [0.5, 1.0, -2.25]

    @pytest.mark.parametrize('raw', [None, '', '[]', []])
    def test_absent(self, raw):
        assert json_to_embedding(raw) is None

    def test_already_decoded(self):
        assert json_to_embedding([1, 2]) == [1.0, 2.0]

    @pytest.mark.parametrize('raw, message', [
        ('not json', 'not valid JSON'),
        ('{"a": 1}', 'expected a list'),
        ('["a", "b"]', 'non-numeric'),
        ('[true, false]', 'non-numeric'),
        ('[1.0, null]', 'non-numeric'),
    ])
    def test_malformed(self, raw, message):
        with pytest.raises(MalformedVectorError, match=message):
            json_to_embedding(raw)


class TestEmbeddingService:
    """OpenAI embeddings wrapper"""

    def test_get_embedding(self):
        client = fake_openai(vector=[0.1, 0.2])
        service = EmbeddingService(client=client, model='test-model')
        assert service.get_embedding('  hello  ') == [0.1, 0.2]
        assert client.embeddings.inputs == [('test-model', 'hello')]

    def test_empty_text(self):
        service = EmbeddingService(client=fake_openai())
        with pytest.raises(EmbeddingError, match='empty'):
            service.get_embedding('   ')

    def test_provider_error(self):
        service = EmbeddingService(client=fake_openai(error=OpenAIError('quota exceeded')))
        with pytest.raises(EmbeddingError, match='quota exceeded'):
            service.get_embedding('hello')

    def test_profile_text(self, members):
        client = fake_openai()
        service = EmbeddingService(client=client)
        service.get_profile_embedding(members['alice'])
        text = client.embeddings.inputs[0][1]
        assert 'Organization: Lumen Analytics' in text
        assert 'What I Need: marketing, seo' in text

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv('OPENAI_API_KEY', raising=False)
        with pytest.raises(ValueError, match='OPENAI_API_KEY'):
            EmbeddingService()
