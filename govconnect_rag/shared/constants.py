"""
Centralized Constants
=====================
All tuned retrieval numbers and hardcoded defaults extracted to one place.

The values below were tuned empirically against the village knowledge base.
They are exposed as constructor parameters on each component so a deployment
can override them without editing code.
"""

# ==============================================================================
# RETRIEVAL DEFAULTS
# ==============================================================================

DEFAULT_TOP_K = 8  # Candidates returned per retrieval
DEFAULT_MIN_SCORE = 0.65  # Vector similarity threshold for "required" intent
MIN_EFFECTIVE_SCORE = 0.45  # Hard floor after every threshold adjustment
OPTIONAL_INTENT_SCORE_FACTOR = 0.9  # "optional" intent relaxes the bar by 10%
VECTOR_FETCH_MULTIPLIER = 2  # Pure-vector path fetches 2x top_k before re-ranking
VECTOR_PRETHRESHOLD_FACTOR = 0.8  # Pure-vector path searches at 80% of the bar

DEFAULT_SOURCE_TYPES = ("knowledge", "document")

# Embedding request shape (Gemini embedding API)
EMBEDDING_TASK_TYPE_QUERY = "RETRIEVAL_QUERY"
EMBEDDING_DIMENSIONS = 768


# ==============================================================================
# RECIPROCAL RANK FUSION
# ==============================================================================

RRF_K = 60  # Standard RRF damping constant
RRF_VECTOR_WEIGHT = 0.7  # Re-ranker: semantic rank dominates
RRF_KEYWORD_WEIGHT = 0.3
RRF_BOOST_FACTOR = 0.2  # final = score * (1 + rrf * factor)
KNOWLEDGE_SOURCE_BOOST = 0.02  # Curated knowledge entries outrank raw documents

KEYWORD_MIN_TERM_LENGTH = 3  # Query terms shorter than this are ignored
EXACT_PHRASE_BONUS = 3.0
BIGRAM_PHRASE_BONUS = 1.5

# Local hybrid search (vector list + keyword list fusion)
HYBRID_VECTOR_WEIGHT = 0.6
HYBRID_KEYWORD_WEIGHT = 0.4
HYBRID_RRF_SCALE = 10.0


# ==============================================================================
# DEDUPLICATION / CONFLICT DETECTION
# ==============================================================================

DUPLICATE_THRESHOLD = 0.70  # Jaccard >= this: redundant restatement, dropped
CONFLICT_THRESHOLD = 0.35  # Jaccard in [this, DUPLICATE): same topic, flagged


# ==============================================================================
# CONFIDENCE
# ==============================================================================

CONFIDENCE_WEIGHTS = {
    "top": 0.50,
    "average": 0.25,
    "count": 0.15,
    "consistency": 0.10,
}
CONFIDENCE_COUNT_SATURATION = 3  # min(count / 3, 1)

# (min composite, min top score); high and medium need both, low needs either
CONFIDENCE_LEVEL_BANDS = {
    "high": (0.8, 0.85),
    "medium": (0.6, 0.7),
    "low": (0.4, 0.6),
}


# ==============================================================================
# CONTEXT ASSEMBLY
# ==============================================================================

MAX_CONTEXT_LENGTH = 5000  # Characters, keeps the prompt under the token limit
MAX_ENTRY_LENGTH = 600  # Per-candidate content budget after compression
CONFLICT_SNIPPET_LENGTH = 200


# ==============================================================================
# QUERY INTENT / EXPANSION
# ==============================================================================

INTENT_CONFIDENCE_THRESHOLD = 0.6  # Micro-classifier decisions below this are "optional"
EXPANSION_MIN_TOKENS = 3  # Queries with fewer whitespace tokens are not expanded
EXPANSION_CACHE_TTL_SECONDS = 15 * 60
EXPANSION_CACHE_SIZE = 200
EXPANSION_TEMPERATURE = 0.2
EXPANSION_MAX_TOKENS = 150

DEFAULT_EXPANSION_MODELS = (
    "gemini/gemini-2.0-flash-lite",
    "gemini/gemini-2.5-flash-lite",
)
MAX_RETRIES_PER_MODEL = 2
LLM_TIMEOUT_SECONDS = 15.0


# ==============================================================================
# SPAM GUARD
# ==============================================================================

SPAM_MIN_LENGTH = 2
SPAM_MAX_LENGTH = 3000
