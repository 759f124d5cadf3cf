"""
Query Intent Classifier
Decides whether a citizen message needs the knowledge base at all.

Flow:
1. is_trivial() - bare greeting / acknowledgement / "who are you" (regex, no LLM)
2. classify_rag_intent() - delegated micro-classifier (RAG_REQUIRED | RAG_SKIP + confidence)
3. confidence below threshold, classifier failure → "optional" (fail open)

Usage:
    from govconnect_rag.rag.intent_classifier import QueryIntentClassifier, LLMIntentClassifier

    classifier = QueryIntentClassifier(LLMIntentClassifier(generator))
    result = await classifier.classify("jam buka kantor desa kapan?")
    print(result.intent)  # QueryIntent.REQUIRED
"""

import logging
import re
from collections.abc import Sequence
from typing import Any

from govconnect_rag.domain.entities.retrieval import (
    QueryIntent,
    QueryIntentResult,
    RAGIntentDecision,
)
from govconnect_rag.domain.exceptions import LLMAPIError
from govconnect_rag.domain.interfaces.gateways import (
    IntentClassifierGateway,
    TextGenerationGateway,
)
from govconnect_rag.monitoring.logger import preview_query
from govconnect_rag.shared.constants import DEFAULT_EXPANSION_MODELS, INTENT_CONFIDENCE_THRESHOLD
from govconnect_rag.shared.llm_client import parse_json_response
from govconnect_rag.shared.llm_retry import ModelCallPlan

logger = logging.getLogger(__name__)

# Messages that are nothing but one of these forms never reach the knowledge base
TRIVIAL_PATTERNS = [
    r"halo|hai|hi|hello|selamat\s+(pagi|siang|sore|malam)|assalamu'?alaikum|permisi",
    r"ya|tidak|iya|ok|oke|baik|terima\s*kasih|makasih|siap",
    r"benar|betul|setuju|lanjut|sudah|belum|bisa|boleh",
    r"siapa\s+(nama\s+)?kamu|kamu\s+siapa",
]

# Optional trailing honorific / filler, then punctuation
_TRIVIAL_SUFFIX = r"(\s+(kak|kakak|pak|bu|bapak|ibu|min|admin|mas|mbak|ya|dong|banyak))?[\s!?.,~]*"

# Lexical fallback when no micro-classifier is configured
REQUIRE_RAG_PATTERNS = [
    r"bagaimana|gimana|cara|langkah|prosedur|proses",
    r"apa\s+(itu|saja|syarat)|dimana|kapan|berapa|biaya|tarif|harga",
    r"layanan|pelayanan|pendaftaran|pengajuan|permohonan",
    r"surat|dokumen|berkas|formulir|persyaratan",
    r"alamat|lokasi|jam\s+(buka|kerja|operasional)",
]

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "jadwal": ["jam", "buka", "tutup", "jadwal", "operasional", "libur"],
    "kontak": ["telepon", "nomor", "hubungi", "kontak", "alamat", "lokasi", "dimana"],
    "prosedur": ["cara", "proses", "prosedur", "bagaimana", "langkah", "tahap"],
    "layanan": ["layanan", "pelayanan", "apa saja", "tersedia", "jenis"],
    "informasi_umum": ["kelurahan", "desa", "wilayah", "kecamatan"],
    "faq": ["tanya", "pertanyaan", "sering", "umum"],
}


def infer_categories(query: str) -> list[str]:
    """
    Knowledge categories hinted at by the query (substring keyword match).

    Returns:
        Category names in declaration order, possibly empty
    """
    query_lower = query.lower()
    return [
        category
        for category, keywords in CATEGORY_KEYWORDS.items()
        if any(kw in query_lower for kw in keywords)
    ]


class QueryIntentClassifier:
    """
    skip / required / optional classification of a citizen query.

    The regex pre-filter only short-circuits messages that are entirely
    trivial; anything longer goes to the delegated classifier. Failures of the
    delegated call never propagate.
    """

    def __init__(
        self,
        micro_classifier: IntentClassifierGateway | None = None,
        confidence_threshold: float = INTENT_CONFIDENCE_THRESHOLD,
    ):
        """
        Args:
            micro_classifier: Delegated RAG-intent classifier (None = lexical fallback)
            confidence_threshold: Minimum confidence to trust a REQUIRED / SKIP decision
        """
        self.micro_classifier = micro_classifier
        self.confidence_threshold = confidence_threshold
        self._trivial_patterns = [
            re.compile(rf"(?:{p}){_TRIVIAL_SUFFIX}", re.IGNORECASE) for p in TRIVIAL_PATTERNS
        ]
        self._require_patterns = [re.compile(p, re.IGNORECASE) for p in REQUIRE_RAG_PATTERNS]

    def is_trivial(self, query: str) -> bool:
        """True if the whole normalized query is a greeting / acknowledgement form."""
        normalized = query.strip().lower()
        return any(p.fullmatch(normalized) for p in self._trivial_patterns)

    async def classify(
        self, query: str, context: dict[str, Any] | None = None
    ) -> QueryIntentResult:
        """
        Args:
            query: Citizen message
            context: Session context forwarded to the micro-classifier

        Returns:
            QueryIntentResult
        """
        normalized = query.strip().lower()
        if not normalized:
            return QueryIntentResult(intent=QueryIntent.SKIP, reason="empty query")

        if self.is_trivial(normalized):
            return QueryIntentResult(intent=QueryIntent.SKIP, reason="trivial message")

        if self.micro_classifier is None:
            return self._classify_lexically(normalized)

        try:
            decision = await self.micro_classifier.classify_rag_intent(query, context)
        except Exception as e:
            logger.warning(f"RAG intent classification failed, defaulting to optional: {e}")
            return QueryIntentResult(
                intent=QueryIntent.OPTIONAL,
                categories=infer_categories(normalized),
                reason="classifier unavailable",
            )

        if decision is None:
            logger.debug(f"No RAG intent decision for: {preview_query(query)}")
            return QueryIntentResult(
                intent=QueryIntent.OPTIONAL,
                categories=infer_categories(normalized),
                reason="classifier returned no decision",
            )

        return self._from_decision(decision, normalized)

    def _from_decision(self, decision: RAGIntentDecision, normalized: str) -> QueryIntentResult:
        categories = list(decision.categories) or infer_categories(normalized)
        reason = decision.reason or ""

        if decision.confidence >= self.confidence_threshold:
            if decision.decision == "RAG_REQUIRED":
                return QueryIntentResult(
                    intent=QueryIntent.REQUIRED,
                    categories=categories,
                    confidence=decision.confidence,
                    reason=reason,
                )
            if decision.decision == "RAG_SKIP":
                return QueryIntentResult(
                    intent=QueryIntent.SKIP,
                    categories=[],
                    confidence=decision.confidence,
                    reason=reason,
                )

        return QueryIntentResult(
            intent=QueryIntent.OPTIONAL,
            categories=categories,
            confidence=decision.confidence,
            reason=reason or "low-confidence decision",
        )

    def _classify_lexically(self, normalized: str) -> QueryIntentResult:
        categories = infer_categories(normalized)
        if any(p.search(normalized) for p in self._require_patterns):
            return QueryIntentResult(
                intent=QueryIntent.REQUIRED, categories=categories, reason="information request"
            )
        return QueryIntentResult(intent=QueryIntent.OPTIONAL, categories=categories)


class LLMIntentClassifier:
    """
    IntentClassifierGateway backed by a small generation model.

    The prompt asks for a unified message classification (message type,
    whether the knowledge base is needed, relevant categories) in one JSON
    object.
    """

    CLASSIFY_PROMPT = """Kamu adalah classifier pesan untuk sistem layanan publik Indonesia (GovConnect).

TUGAS:
Tentukan apakah pesan user perlu dicarikan jawabannya di knowledge base desa/kelurahan.

1. message_type: GREETING | FAREWELL | QUESTION | DATA_INPUT | COMPLAINT | CONFIRMATION | SOCIAL
2. rag_needed:
   - true: pertanyaan tentang prosedur, syarat, biaya, jadwal, lokasi, pejabat, layanan, dokumen, info desa, program, regulasi
   - false: salam, konfirmasi, data input, keluhan, percakapan sosial, pamit
3. categories: pilih dari "jadwal", "kontak", "prosedur", "layanan", "informasi_umum", "faq", "profil_desa", "pengaduan", "struktur_desa" (boleh kosong)

CONTOH:
- "halo" → GREETING, rag_needed: false, categories: []
- "jam buka kantor?" → QUESTION, rag_needed: true, categories: ["jadwal"]
- "siapa kepala desanya?" → QUESTION, rag_needed: true, categories: ["informasi_umum", "struktur_desa"]
- "cara buat KTP gimana?" → QUESTION, rag_needed: true, categories: ["prosedur", "layanan"]
- "jalan rusak depan masjid" → COMPLAINT, rag_needed: false, categories: []

OUTPUT (JSON saja, tanpa markdown):
{{"message_type": "...", "rag_needed": true/false, "categories": [...], "confidence": 0.0-1.0, "reason": "penjelasan singkat"}}

PESAN USER:
{message}"""

    VALID_MESSAGE_TYPES = {
        "GREETING",
        "FAREWELL",
        "QUESTION",
        "DATA_INPUT",
        "COMPLAINT",
        "CONFIRMATION",
        "SOCIAL",
    }

    def __init__(
        self,
        generator: TextGenerationGateway,
        models: Sequence[str] = DEFAULT_EXPANSION_MODELS,
        call_plan: ModelCallPlan | None = None,
    ):
        self.generator = generator
        self.call_plan = call_plan or ModelCallPlan(models)

    async def classify_rag_intent(
        self, query: str, context: dict[str, Any] | None = None
    ) -> RAGIntentDecision | None:
        """
        Returns:
            RAGIntentDecision, or None when credentials are missing or every model failed
        """
        if not self.generator.has_credentials():
            return None

        prompt = self.CLASSIFY_PROMPT.format(message=query)

        async def call(model: str) -> RAGIntentDecision | None:
            raw = await self.generator.generate(prompt, model=model, temperature=0.0, max_tokens=200)
            return self._parse(raw)

        outcome = await self.call_plan.run(
            call, accept=lambda decision: decision is not None, label="rag_intent"
        )
        if outcome.value is not None:
            logger.debug(
                f"RAG intent: {outcome.value.decision} ({outcome.value.confidence:.2f}) "
                f"for {preview_query(query)}"
            )
        return outcome.value

    def _parse(self, raw: str) -> RAGIntentDecision | None:
        try:
            data = parse_json_response(raw)
        except LLMAPIError as e:
            logger.debug(f"Unparseable RAG intent payload: {e}")
            return None

        if data.get("message_type") not in self.VALID_MESSAGE_TYPES:
            return None
        confidence = data.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            return None

        categories = data.get("categories")
        if not isinstance(categories, list):
            categories = []

        return RAGIntentDecision(
            decision="RAG_REQUIRED" if data.get("rag_needed") else "RAG_SKIP",
            confidence=max(0.0, min(1.0, float(confidence))),
            categories=[str(c) for c in categories],
            reason=data.get("reason"),
        )
