from collections import defaultdict
from itertools import combinations
from typing import Dict, List, Sequence, Union
import logging

from setscan.cards import PROPERTY_NAMES, Card, SetTriple, pack_key

logger = logging.getLogger(__name__)

# Above this many cards the pair/lookup search replaces full enumeration
BRUTE_FORCE_MAX_CARDS = 25

ALL_SAME = "all same"
ALL_DIFFERENT = "all different"


def is_identical_or_distinct(a, b, c) -> bool:
    """
    Core Set rule for one property: valid when the three values are all the
    same (1 distinct value) or all different (3), invalid with exactly 2.
    """
    return len({a, b, c}) != 2


def third_value(a: int, b: int) -> int:
    """
    Value a third card needs on a 3-value property to complete a Set.

    Equal values require the same value again; two different values require
    the remaining one; indices 0, 1, 2 always sum to 3.
    """
    if a == b:
        return a
    return 3 - int(a) - int(b)


def is_set(card1: Card, card2: Card, card3: Card) -> bool:
    """
    Determine if three cards form a valid Set.

    Exits as soon as one property fails the rule.
    """
    for feature in PROPERTY_NAMES:
        if not is_identical_or_distinct(getattr(card1, feature),
                                        getattr(card2, feature),
                                        getattr(card3, feature)):
            return False
    return True


def required_key(card1: Card, card2: Card) -> int:
    """Packed signature of the only card that completes a Set with these two."""
    return pack_key(
        third_value(card1.shape, card2.shape),
        third_value(card1.color, card2.color),
        third_value(card1.count, card2.count),
        third_value(card1.shading, card2.shading),
    )


def _triple(cards: Sequence[Card], i: int, j: int, k: int) -> SetTriple:
    return SetTriple(cards=(cards[i], cards[j], cards[k]), indices=(i, j, k))


def find_sets_brute_force(cards: Sequence[Card]) -> List[SetTriple]:
    """
    Test every index triple i < j < k. O(n^3); the reference algorithm.
    """
    sets_found = []
    if len(cards) < 3:
        return sets_found
    for i, j, k in combinations(range(len(cards)), 3):
        if is_set(cards[i], cards[j], cards[k]):
            sets_found.append(_triple(cards, i, j, k))
    return sets_found


def find_sets_optimized(cards: Sequence[Card]) -> List[SetTriple]:
    """
    Pair scan with hash lookup. O(n^2) plus lookups.

    For each pair (i, j) the completing card is unique, so only its signature
    needs to be looked up. Only indices k > j are emitted, which yields each
    triple once, from its lowest pair. Signatures map to every index carrying
    them so repeated property combinations give the same triples as
    find_sets_brute_force.
    """
    sets_found = []
    if len(cards) < 3:
        return sets_found

    by_key: Dict[int, List[int]] = defaultdict(list)
    for idx, card in enumerate(cards):
        by_key[card.key].append(idx)

    for i, j in combinations(range(len(cards)), 2):
        for k in by_key.get(required_key(cards[i], cards[j]), ()):
            if k > j:
                sets_found.append(_triple(cards, i, j, k))
    return sets_found


def find_all_sets(cards: Sequence[Card], method: str = "auto") -> List[SetTriple]:
    """
    Find every valid Set among the cards.

    Args:
        cards (list): Classified cards; indices in the result refer to this list
        method (str): "brute", "optimized", or "auto" (brute force up to
                      BRUTE_FORCE_MAX_CARDS cards)

    Returns:
        list: SetTriple objects ordered by (i, j, k)
    """
    if method == "auto":
        method = "brute" if len(cards) <= BRUTE_FORCE_MAX_CARDS else "optimized"
    if method == "brute":
        sets_found = find_sets_brute_force(cards)
    elif method == "optimized":
        sets_found = find_sets_optimized(cards)
    else:
        raise ValueError(f"Unknown set search method: {method}")

    logger.info(f"Found {len(sets_found)} valid sets among {len(cards)} cards")
    return sets_found


def analyze_set(cards: Union[SetTriple, Sequence[Card]]) -> Dict[str, str]:
    """
    Explain an already valid Set property by property.

    Does not re-check the rule: one distinct value reads "all same",
    anything else "all different".
    """
    if isinstance(cards, SetTriple):
        cards = cards.cards
    # iterated once per property
    cards = tuple(cards)

    def _analyze(values) -> str:
        return ALL_SAME if len(set(values)) == 1 else ALL_DIFFERENT

    return {
        "shape": _analyze(card.shape for card in cards),
        "color": _analyze(card.color for card in cards),
        "number": _analyze(card.count for card in cards),
        "shading": _analyze(card.shading for card in cards),
    }
