"""
RAG Service
===========
Entry points of the retrieval core.

Pipeline:
    classify intent ──skip──▶ empty result
        │
    expand query        (recoverable: original query on failure)
        │
    retrieve            (fatal: RetrievalError → empty result, "RAG retrieval failed")
        │
    record retrievals   (fire-and-forget analytics)
        │
    dedupe + conflicts → assemble context → estimate confidence → RAGResult

retrieve_context never raises; callers treat an empty result or
confidence "none" as "no knowledge available".

Usage:
    service = RAGService.from_config(RAGConfig.from_env(), vector_store, keyword_store)
    if not is_spam_message(message):
        result = await service.retrieve_context(message, RetrievalOptions(village_id="desa-01"))
"""

import asyncio
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from govconnect_rag.domain.entities.retrieval import (
    Confidence,
    QueryIntent,
    QueryIntentResult,
    RAGResult,
    RetrievalOptions,
    SourceType,
)
from govconnect_rag.domain.exceptions import RetrievalError
from govconnect_rag.domain.interfaces.gateways import (
    EmbeddingGateway,
    HybridSearchGateway,
    IntentClassifierGateway,
    KeywordSearchGateway,
    TextGenerationGateway,
    VectorStoreGateway,
)
from govconnect_rag.infrastructure.config.config_manager import RAGConfig
from govconnect_rag.monitoring.logger import ServiceLogger, preview_query
from govconnect_rag.monitoring.rag_metrics import RAGMetricsCollector
from govconnect_rag.shared.constants import DEFAULT_MIN_SCORE, DEFAULT_TOP_K
from govconnect_rag.shared.llm_client import LiteLLMTextGenerator
from govconnect_rag.shared.llm_retry import ModelCallPlan

from .confidence import ConfidenceEstimator
from .context_builder import ContextAssembler
from .deduplicator import Deduplicator
from .embedding_cache import InMemoryEmbeddingCache, SQLiteEmbeddingCache
from .embedding_gateway import LiteLLMEmbeddingGateway
from .expansion_cache import ExpansionCache
from .hybrid_retriever import HybridRetriever
from .hybrid_search import LocalHybridSearch
from .intent_classifier import LLMIntentClassifier, QueryIntentClassifier
from .query_expander import QueryExpander
from .spam_guard import is_spam_message

T = TypeVar("T")

__all__ = ["RAGService", "StageOutcome", "is_spam_message"]


@dataclass
class StageOutcome(Generic[T]):
    """Result of one recoverable pipeline stage."""

    stage: str
    value: T
    recovered: bool = False  # True when `value` is the fallback


class RAGService:
    """Retrieval-augmented context provider for the answering layer."""

    def __init__(
        self,
        retriever: HybridRetriever,
        intent_classifier: QueryIntentClassifier | None = None,
        query_expander: QueryExpander | None = None,
        deduplicator: Deduplicator | None = None,
        confidence_estimator: ConfidenceEstimator | None = None,
        context_assembler: ContextAssembler | None = None,
        metrics: RAGMetricsCollector | None = None,
        logger: ServiceLogger | None = None,
        default_top_k: int = DEFAULT_TOP_K,
        default_min_score: float = DEFAULT_MIN_SCORE,
    ):
        """
        Args:
            retriever: Candidate fetcher (hybrid or vector path)
            intent_classifier: skip / required / optional gate (lexical when omitted)
            query_expander: Synonym expansion; None disables expansion
            deduplicator: Near-duplicate / conflict detector
            confidence_estimator: Result-set verdict
            context_assembler: Prompt context builder
            metrics: Runtime metrics sink
            logger: Service logger
            default_top_k: top_k when the caller leaves it unset
            default_min_score: min_score when the caller leaves it unset
        """
        self.retriever = retriever
        self.intent_classifier = intent_classifier or QueryIntentClassifier()
        self.query_expander = query_expander
        self.deduplicator = deduplicator or Deduplicator()
        self.confidence_estimator = confidence_estimator or ConfidenceEstimator()
        self.context_assembler = context_assembler or ContextAssembler()
        self.metrics = metrics or RAGMetricsCollector()
        self.logger = logger or ServiceLogger("rag_service")
        self.default_top_k = default_top_k
        self.default_min_score = default_min_score
        self._background_tasks: set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls,
        config: RAGConfig,
        vector_store: VectorStoreGateway,
        keyword_store: KeywordSearchGateway | None = None,
        *,
        embedding_gateway: EmbeddingGateway | None = None,
        hybrid_search: HybridSearchGateway | None = None,
        generator: TextGenerationGateway | None = None,
        intent_gateway: IntentClassifierGateway | None = None,
    ) -> "RAGService":
        """
        Wire the default LiteLLM-backed components around the hosting
        service's stores.

        Args:
            config: Runtime settings
            vector_store: Nearest-neighbour store
            keyword_store: Full-text store used by the local hybrid search
            embedding_gateway: Override of the LiteLLM embedder
            hybrid_search: Override of the local hybrid search
            generator: Override of the LiteLLM text generator
            intent_gateway: Override of the micro intent classifier
        """
        generator = generator or LiteLLMTextGenerator(
            api_keys=config.api_keys, timeout=config.llm_timeout_seconds
        )
        embedding_gateway = embedding_gateway or LiteLLMEmbeddingGateway(
            model=config.embedding_model,
            api_key=config.gemini_api_key or config.openai_api_key,
            cache=(
                SQLiteEmbeddingCache(db_path=config.embedding_cache_path)
                if config.embedding_cache_path
                else InMemoryEmbeddingCache()
            ),
            timeout=config.llm_timeout_seconds,
        )
        hybrid_search = hybrid_search or LocalHybridSearch(
            embedding_gateway, vector_store, keyword_store
        )

        if intent_gateway is None and generator.has_credentials():
            intent_gateway = LLMIntentClassifier(
                generator,
                call_plan=ModelCallPlan(
                    config.expansion_models, max_retries_per_model=config.max_retries_per_model
                ),
            )

        return cls(
            retriever=HybridRetriever(
                embedding_gateway,
                vector_store,
                hybrid_search=hybrid_search,
                min_effective_score=config.min_effective_score,
            ),
            intent_classifier=QueryIntentClassifier(intent_gateway),
            query_expander=QueryExpander(
                generator,
                ExpansionCache(
                    ttl_seconds=config.expansion_cache_ttl_seconds,
                    max_size=config.expansion_cache_size,
                ),
                models=config.expansion_models,
                max_retries_per_model=config.max_retries_per_model,
            ),
            deduplicator=Deduplicator(
                duplicate_threshold=config.duplicate_threshold,
                conflict_threshold=config.conflict_threshold,
            ),
            context_assembler=ContextAssembler(
                max_context_length=config.max_context_length,
                max_entry_length=config.max_entry_length,
            ),
            default_top_k=config.default_top_k,
            default_min_score=config.default_min_score,
        )

    async def retrieve_context(
        self, query: str, options: RetrievalOptions | None = None
    ) -> RAGResult:
        """
        Retrieve grounding context for a citizen query.

        Args:
            query: Citizen message
            options: Retrieval options (service defaults when omitted)

        Returns:
            RAGResult (never raises)
        """
        start = time.perf_counter()
        options = (options or RetrievalOptions()).with_defaults(
            self.default_top_k, self.default_min_score
        )
        self.logger.retrieval_start(
            query,
            {
                "top_k": options.top_k,
                "min_score": options.min_score,
                "hybrid": options.use_hybrid_search,
                "expansion": options.use_query_expansion,
            },
        )

        intent: QueryIntent | None = None
        expanded_query: str | None = None
        fallbacks: list[str] = []
        try:
            classification = await self._classify(query, options.session_context)
            intent = classification.value.intent
            if classification.recovered:
                fallbacks.append(classification.stage)

            if intent == QueryIntent.SKIP:
                self.logger.debug(
                    f"Skipping RAG for {preview_query(query)} ({classification.value.reason})"
                )
                return self._finish(
                    query, RAGResult.empty(self._elapsed_ms(start), intent=intent), fallbacks
                )

            expansion = await self._expand(query, options)
            expanded_query = expansion.value
            if expansion.recovered:
                fallbacks.append(expansion.stage)

            candidates = await self.retriever.retrieve(
                expanded_query, options, intent, original_query=query
            )
            if not candidates:
                return self._finish(
                    query,
                    RAGResult.empty(
                        self._elapsed_ms(start), intent=intent, expanded_query=expanded_query
                    ),
                    fallbacks,
                )

            self._record_retrievals(
                [c.id for c in candidates if c.source_type == SourceType.KNOWLEDGE]
            )

            chunks = self.deduplicator.dedupe(candidates)
            assembled = self.context_assembler.assemble(chunks)
            confidence = self.confidence_estimator.estimate(chunks)

            result = RAGResult(
                relevant_chunks=chunks,
                context_string=assembled.context_string,
                total_results=len(chunks),
                search_time_ms=self._elapsed_ms(start),
                confidence=confidence,
                conflicts=assembled.conflicts,
                intent=intent,
                expanded_query=expanded_query,
            )
        except RetrievalError as e:
            self.logger.retrieval_failed(query, str(e), stage=e.stage)
            return self._finish(
                query, self._failed_result(start, intent, expanded_query), fallbacks, failed=True
            )
        except Exception as e:
            self.logger.error(
                f"Unexpected RAG failure for {preview_query(query)}: {e}", exc_info=True
            )
            return self._finish(
                query, self._failed_result(start, intent, expanded_query), fallbacks, failed=True
            )

        self.logger.retrieval_complete(
            result.total_results,
            result.confidence.level.value,
            result.search_time_ms,
            intent=intent.value,
        )
        return self._finish(query, result, fallbacks)

    async def should_retrieve_context(self, query: str) -> bool:
        """True unless the query is classified as not needing the knowledge base."""
        classification = await self._classify(query, None)
        return classification.value.intent != QueryIntent.SKIP

    async def flush_analytics(self) -> None:
        """Wait for pending fire-and-forget retrieval recordings."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    async def close(self) -> None:
        """Flush analytics and release the embedding cache."""
        await self.flush_analytics()
        close = getattr(self.retriever.embedding_gateway, "close", None)
        if close is not None:
            await close()

    # Stages

    async def _classify(
        self, query: str, context: dict[str, Any] | None
    ) -> StageOutcome[QueryIntentResult]:
        return await self._recoverable(
            "classification",
            self.intent_classifier.classify(query, context),
            QueryIntentResult(intent=QueryIntent.OPTIONAL, reason="classification failed"),
        )

    async def _expand(self, query: str, options: RetrievalOptions) -> StageOutcome[str]:
        if not options.use_query_expansion or self.query_expander is None:
            return StageOutcome(stage="expansion", value=query)
        return await self._recoverable("expansion", self.query_expander.expand(query), query)

    async def _recoverable(self, stage: str, work: Awaitable[T], fallback: T) -> StageOutcome[T]:
        try:
            return StageOutcome(stage=stage, value=await work)
        except Exception as e:
            self.logger.warning(f"RAG {stage} failed, continuing with fallback: {e}")
            return StageOutcome(stage=stage, value=fallback, recovered=True)

    def _record_retrievals(self, knowledge_ids: list[str]) -> None:
        if not knowledge_ids:
            return
        task = asyncio.create_task(self._send_retrievals(knowledge_ids))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _send_retrievals(self, knowledge_ids: list[str]) -> None:
        try:
            await self.retriever.vector_store.record_batch_retrievals(knowledge_ids)
        except Exception as e:
            self.logger.debug(f"Recording retrievals failed: {e}")

    # Helpers

    def _finish(
        self, query: str, result: RAGResult, fallbacks: list[str], failed: bool = False
    ) -> RAGResult:
        self.metrics.record_result(query, result, failed=failed, fallback_stages=fallbacks)
        return result

    def _failed_result(
        self, start: float, intent: QueryIntent | None, expanded_query: str | None
    ) -> RAGResult:
        return RAGResult.empty(
            self._elapsed_ms(start),
            confidence=Confidence.none("RAG retrieval failed"),
            intent=intent,
            expanded_query=expanded_query,
        )

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)
