"""
Tests for the Set rule, both search algorithms, and the explainer.
"""
from itertools import product

import numpy as np
import pytest

from conftest import card, random_cards
from setscan.cards import (
    Color,
    Count,
    InvalidPropertyIndex,
    Shading,
    Shape,
    indices_to_card,
)
from setscan.set_finder import (
    ALL_DIFFERENT,
    ALL_SAME,
    analyze_set,
    find_all_sets,
    find_sets_brute_force,
    find_sets_optimized,
    is_identical_or_distinct,
    is_set,
    third_value,
)


def _index_triples(sets):
    return {triple.indices for triple in sets}


class TestRule:
    def test_rule_matches_distinct_count_for_all_triples(self):
        for a, b, c in product(range(3), repeat=3):
            assert is_identical_or_distinct(a, b, c) == (len({a, b, c}) != 2)

    def test_third_value_is_the_unique_completion(self):
        for a, b in product(range(3), repeat=2):
            completions = [c for c in range(3) if is_identical_or_distinct(a, b, c)]
            assert completions == [third_value(a, b)]

    def test_third_value_on_enums(self):
        assert third_value(Shape.DIAMOND, Shape.OVAL) == Shape.SQUIGGLE
        assert third_value(Color.GREEN, Color.GREEN) == Color.GREEN

    def test_shape_only_difference_is_a_set(self, set_abc):
        assert is_set(*set_abc)

    def test_two_of_a_kind_count_is_not_a_set(self, set_abc):
        a, b, _ = set_abc
        d = card(3, Shape.OVAL, Color.RED, Count.TWO, Shading.SOLID)
        assert not is_set(a, b, d)


class TestSearch:
    @pytest.mark.parametrize("n", [0, 1, 2])
    def test_fewer_than_three_cards(self, n, set_abc):
        cards = list(set_abc)[:n]
        assert find_all_sets(cards) == []
        assert find_sets_optimized(cards) == []

    def test_finds_concrete_set(self, set_abc):
        a, b, c = set_abc
        d = card(3, Shape.OVAL, Color.RED, Count.TWO, Shading.SOLID)
        sets = find_all_sets([a, b, c, d])
        assert _index_triples(sets) == {(0, 1, 2)}
        assert sets[0].cards == (a, b, c)

    @pytest.mark.parametrize("seed", range(31))
    def test_brute_force_and_optimized_agree(self, seed):
        rng = np.random.default_rng(seed)
        cards = random_cards(rng, seed)
        brute = find_sets_brute_force(cards)
        fast = find_sets_optimized(cards)
        assert _index_triples(brute) == _index_triples(fast)
        assert len(brute) == len(fast)

    def test_duplicate_cards_are_not_lost(self):
        same = [card(i, Shape.OVAL, Color.GREEN, Count.TWO, Shading.EMPTY) for i in range(4)]
        expected = {(0, 1, 2), (0, 1, 3), (0, 2, 3), (1, 2, 3)}
        assert _index_triples(find_sets_brute_force(same)) == expected
        assert _index_triples(find_sets_optimized(same)) == expected

    def test_optimized_emits_sorted_indices(self):
        rng = np.random.default_rng(7)
        for triple in find_sets_optimized(random_cards(rng, 30)):
            i, j, k = triple.indices
            assert i < j < k

    def test_full_deck_has_1080_sets(self):
        deck = [card(i, Shape(s), Color(c), Count(k), Shading(f))
                for i, (s, c, k, f) in enumerate(product(range(3), repeat=4))]
        assert len(find_sets_optimized(deck)) == 1080
        assert len(find_all_sets(deck)) == 1080

    def test_method_dispatch(self, set_abc):
        assert len(find_all_sets(list(set_abc), method="optimized")) == 1
        assert len(find_all_sets(list(set_abc), method="brute")) == 1
        with pytest.raises(ValueError):
            find_all_sets(list(set_abc), method="quantum")


class TestAnalyze:
    def test_analyze_shape_only_set(self, set_abc):
        assert analyze_set(set_abc) == {
            "shape": ALL_DIFFERENT,
            "color": ALL_SAME,
            "number": ALL_SAME,
            "shading": ALL_SAME,
        }

    def test_analyze_accepts_triple(self, set_abc):
        triple = find_all_sets(list(set_abc))[0]
        assert analyze_set(triple)["shape"] == "all different"

    def test_analyze_accepts_iterator(self, set_abc):
        assert analyze_set(c for c in set_abc) == analyze_set(set_abc)

    def test_all_different_set(self):
        cards = [card(i, Shape(i), Color(i), Count(i), Shading(i)) for i in range(3)]
        assert set(analyze_set(cards).values()) == {"all different"}


class TestIndicesToCard:
    def test_lookup_tables(self):
        props = indices_to_card(2, 1, 0, 2)
        assert props.shape == Shape.SQUIGGLE
        assert props.color == Color.GREEN
        assert props.count.label == 1
        assert props.shading.label == "empty"

    @pytest.mark.parametrize("indices", [(3, 0, 0, 0), (0, -1, 0, 0), (0, 0, 5, 0), (0, 0, 0, 3)])
    def test_out_of_range_is_a_contract_violation(self, indices):
        with pytest.raises(InvalidPropertyIndex):
            indices_to_card(*indices)
