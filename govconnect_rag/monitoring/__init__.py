"""
Monitoring: logging and runtime retrieval metrics
"""

from .logger import SensitiveDataFilter, ServiceLogger, preview_query
from .rag_metrics import RAGMetricsCollector, RetrievalRecord

__all__ = [
    "RAGMetricsCollector",
    "RetrievalRecord",
    "SensitiveDataFilter",
    "ServiceLogger",
    "preview_query",
]
