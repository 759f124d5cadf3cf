"""
Query Expander
Appends Indonesian synonyms / related terms to a citizen query for better
retrieval recall.

Flow:
1. Skip: empty query, no credentials, or at most 2 tokens
2. Cache lookup (normalized key, TTL)
3. ModelCallPlan over the micro models; accept only results longer than the query
4. Any failure → original query (expansion is never fatal)

Usage:
    expander = QueryExpander(LiteLLMTextGenerator(), ExpansionCache())
    expanded = await expander.expand("cara bikin KTP")
    # "cara bikin KTP kartu tanda penduduk identitas pembuatan prosedur persyaratan"
"""

import logging
from collections.abc import Sequence

from govconnect_rag.domain.interfaces.gateways import TextGenerationGateway
from govconnect_rag.monitoring.logger import preview_query
from govconnect_rag.shared.constants import (
    DEFAULT_EXPANSION_MODELS,
    EXPANSION_MAX_TOKENS,
    EXPANSION_MIN_TOKENS,
    EXPANSION_TEMPERATURE,
    MAX_RETRIES_PER_MODEL,
)
from govconnect_rag.shared.llm_retry import ModelCallPlan

from .expansion_cache import ExpansionCache

logger = logging.getLogger(__name__)


class QueryExpander:
    """Micro-LLM query expansion with caching and model fallback."""

    EXPAND_PROMPT = """Kamu adalah query expander untuk pencarian dokumen layanan pemerintah Indonesia.

TUGAS:
Diberikan QUERY dari warga, tambahkan 3-5 kata/frasa sinonim yang relevan untuk memperluas pencarian dokumen.

ATURAN:
- Pahami konteks dan maksud query (singkatan, slang, bahasa daerah).
- Tambahkan sinonim yang relevan dalam bahasa Indonesia.
- JANGAN ubah query asli, hanya tambahkan kata-kata relevan di akhir.
- Output langsung teks query yang sudah di-expand (BUKAN JSON).

CONTOH:
Input: "cara bikin KTP"
Output: cara bikin KTP kartu tanda penduduk identitas pembuatan prosedur persyaratan

Input: "jam buka kelurahan"
Output: jam buka kelurahan waktu operasional jadwal kerja pelayanan kantor

QUERY:
{query}"""

    def __init__(
        self,
        generator: TextGenerationGateway,
        cache: ExpansionCache | None = None,
        models: Sequence[str] = DEFAULT_EXPANSION_MODELS,
        max_retries_per_model: int = MAX_RETRIES_PER_MODEL,
        min_tokens: int = EXPANSION_MIN_TOKENS,
    ):
        """
        Args:
            generator: Text generation gateway
            cache: Expansion cache (a private one is created when omitted)
            models: Models in priority order
            max_retries_per_model: Attempts per model
            min_tokens: Queries with fewer whitespace tokens are returned unchanged
        """
        self.generator = generator
        self.cache = cache if cache is not None else ExpansionCache()
        self.call_plan = ModelCallPlan(models, max_retries_per_model=max_retries_per_model)
        self.min_tokens = min_tokens

    def should_expand(self, query: str) -> bool:
        if not query.strip():
            return False
        if len(query.split()) < self.min_tokens:
            return False
        return self.generator.has_credentials()

    async def expand(self, query: str) -> str:
        """
        Args:
            query: Citizen query

        Returns:
            Expanded query, or the input unchanged
        """
        if not self.should_expand(query):
            return query

        cached = self.cache.get(query)
        if cached is not None:
            logger.debug(f"Expansion cache hit: {preview_query(query)}")
            return cached

        prompt = self.EXPAND_PROMPT.format(query=query)

        async def call(model: str) -> str:
            return await self.generator.generate(
                prompt,
                model=model,
                temperature=EXPANSION_TEMPERATURE,
                max_tokens=EXPANSION_MAX_TOKENS,
            )

        outcome = await self.call_plan.run(
            call,
            accept=lambda text: bool(text) and len(text.strip()) > len(query),
            label="query_expansion",
        )
        if outcome.value is None:
            return query

        expanded = outcome.value.strip()
        self.cache.put(query, expanded)
        logger.debug(f"Query expanded via {outcome.model}: {preview_query(expanded, 100)}")
        return expanded
