from setscan.cards import BoxOnly, Color, Count, Shading, Shape
from setscan.synthetic import CARD_H, CARD_W, GAP, generate_synthetic_cards


def test_same_seed_same_cards():
    first = generate_synthetic_cards(seed=11)
    second = generate_synthetic_cards(seed=11)
    assert [c.properties for c in first] == [c.properties for c in second]
    assert [c.confidence for c in first] == [c.confidence for c in second]


def test_different_seeds_differ():
    a = [c.properties for c in generate_synthetic_cards(seed=1)]
    b = [c.properties for c in generate_synthetic_cards(seed=2)]
    assert a != b


def test_schema_is_valid():
    cards = generate_synthetic_cards(count=12, columns=4)
    assert [c.id for c in cards] == list(range(12))
    for c in cards:
        assert isinstance(c.shape, Shape)
        assert isinstance(c.color, Color)
        assert isinstance(c.count, Count)
        assert isinstance(c.shading, Shading)
        assert isinstance(c.placement, BoxOnly)
        assert 0.9 <= c.confidence < 1.0


def test_grid_layout():
    cards = generate_synthetic_cards(count=6, columns=4)
    x1, y1, x2, y2 = cards[0].bbox
    assert (x2 - x1, y2 - y1) == (CARD_W, CARD_H)
    assert cards[1].bbox[0] == x1 + CARD_W + GAP
    # fifth card wraps to the second row
    assert cards[4].bbox[:2] == (x1, y1 + CARD_H + GAP)
