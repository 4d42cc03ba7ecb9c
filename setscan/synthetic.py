import numpy as np
from typing import List

from setscan.cards import COLORS, COUNTS, SHADINGS, SHAPES, BoxOnly, Card

CARD_W = 150
CARD_H = 200
GAP = 20
ORIGIN = (100, 100)


def generate_synthetic_cards(count: int = 12, columns: int = 4, seed: int = 0) -> List[Card]:
    """
    Lay out a deterministic grid of random but well-formed cards.

    Used when no detection or classification backend is configured. The same
    seed always produces the same cards; ids are 0..count-1.
    """
    rng = np.random.default_rng(seed)
    cards = []
    for i in range(count):
        col = i % columns
        row = i // columns
        x1 = ORIGIN[0] + col * (CARD_W + GAP)
        y1 = ORIGIN[1] + row * (CARD_H + GAP)
        shape, color, number, shading = rng.integers(0, 3, size=4)
        cards.append(Card(
            id=i,
            placement=BoxOnly(bbox=(float(x1), float(y1), float(x1 + CARD_W), float(y1 + CARD_H))),
            shape=SHAPES[shape],
            color=COLORS[color],
            count=COUNTS[number],
            shading=SHADINGS[shading],
            confidence=float(0.9 + rng.random() * 0.1),
        ))
    return cards
