"""
Embedding Service - Semantic matching using OpenAI embeddings
Converts attendee profile text to vectors for similarity scoring
"""
import os
import json
import logging
from typing import List, Dict, Optional, Any

from openai import OpenAI, OpenAIError

from config import get_ai_settings
from profile_features import build_embedding_text

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when the embedding capability cannot produce a vector"""
    pass


class MalformedVectorError(ValueError):
    """Raised when a stored vector cannot be decoded into a list of numbers"""
    pass


def cosine_similarity(vec1: Optional[List[float]], vec2: Optional[List[float]]) -> float:
    """
    Calculate cosine similarity between two vectors.

    Returns a value in [-1, 1], or 0.0 when either vector is absent, the
    lengths differ, either has zero magnitude, or the entries are not numeric.
    """
    if not vec1 or not vec2 or len(vec1) != len(vec2):
        return 0.0

    try:
        dot_product = sum(a * b for a, b in zip(vec1, vec2))
        norm1 = sum(a * a for a in vec1) ** 0.5
        norm2 = sum(b * b for b in vec2) ** 0.5
    except TypeError:
        return 0.0

    if norm1 == 0 or norm2 == 0:
        return 0.0

    similarity = dot_product / (norm1 * norm2)
    # Float error can push identical vectors just past 1
    return max(-1.0, min(1.0, similarity))


def embedding_to_json(embedding: List[float]) -> str:
    """Convert embedding list to JSON string for database storage"""
    return json.dumps(embedding)


def json_to_embedding(raw: Any) -> Optional[List[float]]:
    """
    Decode a stored vector.

    Args:
        raw: JSON text from the vectors table, an already-decoded list, or None

    Returns:
        List of floats, or None when no vector is stored

    Raises:
        MalformedVectorError: stored data is not a JSON list of numbers
    """
    if raw is None or raw == '':
        return None

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedVectorError(f"Stored vector is not valid JSON: {e}")

    if not isinstance(raw, list):
        raise MalformedVectorError(f"Stored vector is a {type(raw).__name__}, expected a list")
    if not raw:
        return None
    if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in raw):
        raise MalformedVectorError("Stored vector contains non-numeric entries")

    return [float(v) for v in raw]


class EmbeddingService:
    """
    Generate embeddings using OpenAI's text-embedding-3-small model.
    Provides the vectors behind semantic profile similarity.
    """

    DIMENSIONS = 1536

    def __init__(self, api_key: Optional[str] = None, client: Optional[OpenAI] = None, model: Optional[str] = None):
        """Initialize with OpenAI API key (or a preconfigured client)"""
        self.model = model or get_ai_settings().get('embedding_model', 'text-embedding-3-small')

        if client is not None:
            self.client = client
            return

        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not set")

        self.client = OpenAI(api_key=self.api_key)

    def profile_to_text(self, member: Dict) -> str:
        """Convert member data to text for embedding"""
        return build_embedding_text(member)

    def get_embedding(self, text: str) -> List[float]:
        """
        Get embedding vector for a single text

        Raises:
            EmbeddingError: empty input or provider failure
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        try:
            response = self.client.embeddings.create(
                model=self.model,
                input=text.strip()
            )
            embedding = response.data[0].embedding
        except OpenAIError as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if not embedding:
            raise EmbeddingError("Embedding response contained no vector")
        return list(embedding)

    def get_profile_embedding(self, member: Dict) -> List[float]:
        """Get embedding for a member profile"""
        return self.get_embedding(self.profile_to_text(member))


# Factory function
def get_embedding_service(api_key: Optional[str] = None) -> Optional[EmbeddingService]:
    """Get embedding service if configured"""
    try:
        return EmbeddingService(api_key)
    except ValueError as e:
        logger.warning(f"Embedding service unavailable: {e}")
        return None
