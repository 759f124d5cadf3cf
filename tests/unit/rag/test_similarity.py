"""Tests for lexical similarity helpers."""

import math

import pytest

from govconnect_rag.rag.similarity import jaccard, keyword_score, query_terms, word_set


class TestWordSet:
    def test_lowercases_and_strips_punctuation(self):
        assert word_set("Kepala Desa: Budi, S.Sos!") == {"kepala", "desa", "budi", "sos"}

    def test_drops_short_tokens(self):
        assert word_set("di RT 05 ada pos") == {"ada", "pos"}

    def test_empty(self):
        assert word_set("") == set()


class TestJaccard:
    def test_identical(self):
        assert jaccard({"a1x", "b2x"}, {"a1x", "b2x"}) == 1.0

    def test_disjoint(self):
        assert jaccard({"aaa"}, {"bbb"}) == 0.0

    def test_both_empty_is_zero(self):
        assert jaccard(set(), set()) == 0.0

    def test_partial_overlap(self):
        assert jaccard({"aaa", "bbb", "ccc"}, {"bbb", "ccc", "ddd"}) == pytest.approx(0.5)


class TestQueryTerms:
    def test_keeps_order_and_drops_short(self):
        assert query_terms("Jam buka di kelurahan") == ["jam", "buka", "kelurahan"]


class TestKeywordScore:
    def test_no_match_is_zero(self):
        assert keyword_score("Syarat pembuatan KTP", "jadwal posyandu") == 0.0

    def test_term_occurrences_use_log(self):
        score = keyword_score("ktp ktp ktp", "ktp")
        # log(1 + 3) + exact phrase bonus
        assert score == pytest.approx(math.log(4) + 3.0)

    def test_exact_phrase_and_bigram_bonus(self):
        content = "Jam buka kelurahan adalah pukul 08.00"
        with_phrase = keyword_score(content, "jam buka kelurahan")
        scattered = keyword_score("kelurahan ... buka ... jam", "jam buka kelurahan")
        assert with_phrase > scattered
        # 3 terms once each + phrase + 2 bigrams
        assert with_phrase == pytest.approx(3 * math.log(2) + 3.0 + 2 * 1.5)

    def test_regex_metacharacters_are_literal(self):
        content = "Biaya (gratis) untuk surat keterangan"
        assert keyword_score(content, "(gratis) surat") > 0
        assert keyword_score("abc", "a.c*+?[") == 0.0
