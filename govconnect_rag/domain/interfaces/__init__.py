"""
Domain interfaces (Protocols) for external collaborators
"""

from .gateways import (
    EmbeddingGateway,
    HybridSearchGateway,
    IntentClassifierGateway,
    KeywordSearchGateway,
    TextGenerationGateway,
    VectorStoreGateway,
)

__all__ = [
    "EmbeddingGateway",
    "HybridSearchGateway",
    "IntentClassifierGateway",
    "KeywordSearchGateway",
    "TextGenerationGateway",
    "VectorStoreGateway",
]
