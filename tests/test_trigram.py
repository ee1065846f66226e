"""Trigram similarity tests."""

import pytest

from mailmirror.trigram import fold, similarity, trigrams


def test_fold_strips_case_and_accents() -> None:
    assert fold("Crème BRÛLÉE") == "creme brulee"
    assert fold("Straße") == "strasse"
    assert fold(None) == ""


def test_trigrams_pad_each_word() -> None:
    assert trigrams("cat") == frozenset({"  c", " ca", "cat", "at "})


def test_trigrams_ignore_punctuation() -> None:
    assert trigrams("cat!") == trigrams("cat")
    assert trigrams("...") == frozenset()


def test_identical_strings_score_one() -> None:
    assert similarity("Invoice", "invoice") == 1.0


def test_unrelated_strings_score_zero() -> None:
    assert similarity("invoice", "zebra") == 0.0


def test_empty_side_scores_zero() -> None:
    assert similarity("", "invoice") == 0.0
    assert similarity("invoice", None) == 0.0


def test_typo_still_matches() -> None:
    score = similarity("invoice", "invoce")
    assert 0.3 < score < 1.0


@pytest.mark.parametrize(
    ("left", "right"),
    [
        ("quarterly report", "report"),
        ("alice@example.com", "alice"),
        ("Résumé", "resume"),
        ("a", "abcdef"),
    ],
)
def test_similarity_is_symmetric_and_bounded(left: str, right: str) -> None:
    score = similarity(left, right)
    assert 0.0 <= score <= 1.0
    assert score == similarity(right, left)
