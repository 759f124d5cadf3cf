"""
Context Builder
Assembles the knowledge block placed in the answering prompt.

Layout:
    RELEVANT KNOWLEDGE:

    ⚠️ PERHATIAN: Ditemukan 1 kelompok data yang BERBEDA dari sumber berbeda.
    <instruction line>

    1. [JADWAL]
    Kantor buka Senin-Jumat 08:00-16:00.

    2. [DOC: Struktur Organisasi]
    ⚠️ [KONFLIK DATA - Ada 2 sumber berbeda tentang topik ini]
    [SUMBER: Profil Desa 2023] Kepala Desa adalah ...

    ... (3 more results truncated)

Entries are added whole or not at all; the block stays within the length
budget except for the final truncation notice.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from govconnect_rag.domain.entities.retrieval import ConflictInfo, DedupedCandidate, SourceType
from govconnect_rag.shared.constants import (
    CONFLICT_SNIPPET_LENGTH,
    MAX_CONTEXT_LENGTH,
    MAX_ENTRY_LENGTH,
)

from .similarity import jaccard, word_set

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "RELEVANT KNOWLEDGE:\n\n"
CONFLICT_BANNER = "⚠️ PERHATIAN: Ditemukan {count} kelompok data yang BERBEDA dari sumber berbeda.\n"
CONFLICT_INSTRUCTION = (
    "Sampaikan SEMUA versi data beserta sumbernya, jangan pilih salah satu, "
    "dan sarankan warga mengonfirmasi ke kantor desa/kelurahan.\n\n"
)
CONFLICT_MARKER = "⚠️ [KONFLIK DATA - Ada {count} sumber berbeda tentang topik ini]\n"
SOURCE_LABEL = "[SUMBER: {source}] "
TRUNCATION_NOTICE = "... ({remaining} more results truncated)\n"

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?。])\s+")
_BANNER_PATTERN = re.compile(
    r"⚠️ PERHATIAN: Ditemukan \d+ kelompok data yang BERBEDA dari sumber berbeda\.\n.*?\n\n"
)
_MARKER_PATTERN = re.compile(r"⚠️ \[KONFLIK DATA - Ada \d+ sumber berbeda tentang topik ini\]\n")
_SOURCE_LABEL_PATTERN = re.compile(r"\[SUMBER: [^\]]+\] ")


def compress_content(content: str, max_length: int = MAX_ENTRY_LENGTH) -> str:
    """
    Shorten content to at most max_length characters.

    Whole leading sentences are kept and "..." appended; when even the first
    sentence does not fit, the text is hard-cut.
    """
    if len(content) <= max_length:
        return content

    budget = max_length - 3  # room for "..."
    compressed = ""
    for sentence in _SENTENCE_SPLIT.split(content):
        if len(compressed) + len(sentence) + 1 > budget:
            break
        compressed = f"{compressed} {sentence}" if compressed else sentence

    if compressed:
        return compressed.strip() + "..."
    return content[:budget] + "..."


def auto_resolve_conflicts(context_string: str) -> str:
    """
    Strip conflict banner, per-item markers and [SUMBER: ...] labels.

    Used when the caller prepends authoritative data that settles the conflict.
    """
    resolved = _BANNER_PATTERN.sub("", context_string)
    resolved = _MARKER_PATTERN.sub("", resolved)
    return _SOURCE_LABEL_PATTERN.sub("", resolved)


@dataclass
class AssembledContext:
    """Output of ContextAssembler.assemble"""

    context_string: str
    conflicts: list[ConflictInfo] = field(default_factory=list)
    included_count: int = 0
    truncated_count: int = 0


class ContextAssembler:
    """
    Usage:
        assembler = ContextAssembler()
        assembled = assembler.assemble(deduped_candidates)
        prompt = f"{assembled.context_string}\\n\\nPERTANYAAN: {query}"
    """

    def __init__(
        self,
        max_context_length: int = MAX_CONTEXT_LENGTH,
        max_entry_length: int = MAX_ENTRY_LENGTH,
    ):
        self.max_context_length = max_context_length
        self.max_entry_length = max_entry_length

    def assemble(self, candidates: Sequence[DedupedCandidate]) -> AssembledContext:
        """
        Args:
            candidates: Deduplicated candidates, best first

        Returns:
            AssembledContext (empty string for an empty candidate list)
        """
        if not candidates:
            return AssembledContext(context_string="")

        groups = self._conflict_groups(candidates)
        conflicts = [self._conflict_info(group_id, members) for group_id, members in groups.items()]

        context = CONTEXT_HEADER
        if groups:
            context += CONFLICT_BANNER.format(count=len(groups)) + CONFLICT_INSTRUCTION

        marked_groups: set[int] = set()
        included = 0
        for i, candidate in enumerate(candidates):
            entry = self._format_entry(i + 1, candidate, groups, marked_groups)
            if len(context) + len(entry) > self.max_context_length:
                context += TRUNCATION_NOTICE.format(remaining=len(candidates) - i)
                break
            context += entry
            included += 1
            if candidate.conflict_group in groups:
                marked_groups.add(candidate.conflict_group)

        truncated = len(candidates) - included
        if truncated:
            logger.debug(f"Context budget reached: {included} entries kept, {truncated} truncated")

        return AssembledContext(
            context_string=context.strip(),
            conflicts=conflicts,
            included_count=included,
            truncated_count=truncated,
        )

    def _format_entry(
        self,
        number: int,
        candidate: DedupedCandidate,
        groups: dict[int, list[DedupedCandidate]],
        marked_groups: set[int],
    ) -> str:
        content = compress_content(candidate.content, self.max_entry_length)

        marker = ""
        group_id = candidate.conflict_group
        if group_id in groups:
            if group_id not in marked_groups:
                marker = CONFLICT_MARKER.format(count=len(groups[group_id]))
            content = SOURCE_LABEL.format(source=self._source_name(candidate)) + content

        return f"{number}. {self._label(candidate)}\n{marker}{content}\n\n"

    @staticmethod
    def _label(candidate: DedupedCandidate) -> str:
        if candidate.source_type == SourceType.KNOWLEDGE:
            return f"[{(candidate.category or 'INFO').upper()}]"
        return f"[DOC: {candidate.section_title or candidate.source}]"

    @staticmethod
    def _source_name(candidate: DedupedCandidate) -> str:
        return candidate.source or candidate.section_title or candidate.id

    @staticmethod
    def _conflict_groups(
        candidates: Sequence[DedupedCandidate],
    ) -> dict[int, list[DedupedCandidate]]:
        """Groups with at least two members, in order of first appearance."""
        groups: dict[int, list[DedupedCandidate]] = {}
        for candidate in candidates:
            group_id = getattr(candidate, "conflict_group", None)
            if group_id is not None:
                groups.setdefault(group_id, []).append(candidate)
        return {gid: members for gid, members in groups.items() if len(members) >= 2}

    def _conflict_info(self, group_id: int, members: list[DedupedCandidate]) -> ConflictInfo:
        first, second = members[0], members[1]
        return ConflictInfo(
            source1=self._source_name(first),
            source2=self._source_name(second),
            content_snippet1=first.content[:CONFLICT_SNIPPET_LENGTH],
            content_snippet2=second.content[:CONFLICT_SNIPPET_LENGTH],
            similarity_score=jaccard(word_set(first.content), word_set(second.content)),
            group_id=group_id,
        )
