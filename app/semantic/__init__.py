from .embeddings import (
    EmbeddingProvider,
    EmbeddingSizeError,
    SimpleEmbeddingProvider,
    cosine_similarity,
    similarity_matrix,
)
from .hybrid_matcher import (
    determine_match_type,
    extract_requirements,
    extract_resume_bullets,
    generate_match_report,
    get_requirement_match_pairs,
    identify_skill_gaps,
    match_requirements,
    match_resume_to_job,
)

__all__ = [
    "EmbeddingProvider",
    "EmbeddingSizeError",
    "SimpleEmbeddingProvider",
    "cosine_similarity",
    "determine_match_type",
    "extract_requirements",
    "extract_resume_bullets",
    "generate_match_report",
    "get_requirement_match_pairs",
    "identify_skill_gaps",
    "match_requirements",
    "match_resume_to_job",
    "similarity_matrix",
]
