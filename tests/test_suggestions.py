from __future__ import annotations

import pytest

from storefinder.services.suggestions import FuzzySuggestions, levenshtein


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ("", "", 0),
        ("bike", "bike", 0),
        ("bike", "bikes", 1),
        ("kitten", "sitting", 3),
        ("", "abc", 3),
        ("flaw", "lawn", 2),
    ],
)
def test_levenshtein(a, b, expected):
    assert levenshtein(a, b) == expected
    assert levenshtein(b, a) == expected


def test_fuzzy_suggestions_match_store_names(run):
    names = ["Bike Hub", "bike hub", "Bake House", "Shoe Mart", "Bikes"]
    source = FuzzySuggestions(lambda: names, max_distance=3)

    labels = [s.label for s in run(source.suggest("Bike Hb"))]
    assert labels == ["Bike Hub", "Bikes"]

    labels = [s.label for s in run(source.suggest("bike"))]
    assert labels == ["Bikes"]


def test_fuzzy_suggestions_follow_current_names(run):
    names = []
    source = FuzzySuggestions(lambda: names, max_distance=1)
    assert run(source.suggest("Bike Hub")) == []

    names.append("Bike Hub")
    assert [s.label for s in run(source.suggest("bike hub"))] == ["Bike Hub"]


def test_fuzzy_suggestions_respect_limit_and_blank(run):
    source = FuzzySuggestions(lambda: ["a", "b", "c", "d"], max_distance=1, limit=2)
    assert [s.label for s in run(source.suggest("x"))] == ["a", "b"]
    assert run(source.suggest("  ")) == []
