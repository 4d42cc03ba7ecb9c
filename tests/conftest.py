"""
Shared fixtures. Scenes are drawn on the fly, so no image assets are needed.
"""
from typing import List, Sequence, Tuple

import cv2
import numpy as np
import pytest

from setscan.cards import BoxOnly, Card, CardProperties, Color, Count, Shading, Shape
from setscan.classification import ClassificationResult

BACKGROUND = (40, 40, 40)
CARD_WHITE = (245, 245, 245)
SYMBOL_RED = (0, 0, 220)

# Card rectangles (x1, y1, x2, y2) on an 800x600 table: two rows of three
GRID_CARDS = [
    (60, 60, 180, 240), (280, 60, 400, 240), (500, 60, 620, 240),
    (60, 330, 180, 510), (280, 330, 400, 510), (500, 330, 620, 510),
]


def draw_card(scene: np.ndarray, rect: Tuple[int, int, int, int], with_symbols: bool = True) -> None:
    x1, y1, x2, y2 = rect
    cv2.rectangle(scene, (x1, y1), (x2 - 1, y2 - 1), CARD_WHITE, -1)
    if not with_symbols:
        return
    cx = (x1 + x2) // 2
    h = y2 - y1
    axes = (max(4, (x2 - x1) // 4), max(3, h // 10))
    for cy in (y1 + h // 4, y1 + h // 2, y1 + 3 * h // 4):
        cv2.ellipse(scene, (cx, cy), axes, 0, 0, 360, SYMBOL_RED, -1)


def make_scene(rects: Sequence[Tuple[int, int, int, int]] = GRID_CARDS,
               size: Tuple[int, int] = (800, 600), with_symbols: bool = True) -> np.ndarray:
    width, height = size
    scene = np.full((height, width, 3), BACKGROUND, np.uint8)
    for rect in rects:
        draw_card(scene, rect, with_symbols)
    return scene


def make_rotated_card_scene(angle: float = 20.0,
                            center: Tuple[int, int] = (400, 300)) -> Tuple[np.ndarray, np.ndarray]:
    """A 140x210 card rotated by `angle`; its box may reach past the frame."""
    cx, cy = center
    scene = np.full((600, 800, 3), BACKGROUND, np.uint8)
    box = cv2.boxPoints(((float(cx), float(cy)), (140.0, 210.0), angle))
    cv2.fillConvexPoly(scene, np.round(box).astype(np.int32), CARD_WHITE)
    cv2.circle(scene, (cx, cy), 30, SYMBOL_RED, -1)
    cv2.circle(scene, (cx, cy - 55), 15, SYMBOL_RED, -1)
    return scene, box


def card(card_id: int, shape: Shape, color: Color, count: Count, shading: Shading) -> Card:
    return Card(
        id=card_id,
        placement=BoxOnly(bbox=(0.0, 0.0, 10.0, 15.0)),
        shape=shape,
        color=color,
        count=count,
        shading=shading,
    )


def random_cards(rng: np.random.Generator, n: int) -> List[Card]:
    values = rng.integers(0, 3, size=(n, 4))
    return [card(i, Shape(s), Color(c), Count(k), Shading(f)) for i, (s, c, k, f) in enumerate(values)]


class ScriptedClassifier:
    """Async classifier returning canned properties in call order."""

    def __init__(self, properties: Sequence[CardProperties]):
        self.properties = list(properties)
        self.calls = 0
        self.images = []

    async def classify(self, card_image: np.ndarray) -> ClassificationResult:
        props = self.properties[self.calls % len(self.properties)]
        self.calls += 1
        self.images.append(card_image)
        logits = {}
        for name, value in (("shape", props.shape), ("color", props.color),
                            ("number", props.count), ("shading", props.shading)):
            scores = np.zeros(3, dtype=np.float32)
            scores[int(value)] = 5.0
            logits[name] = scores
        return ClassificationResult.from_logits(logits)


@pytest.fixture
def grid_scene() -> np.ndarray:
    return make_scene()


@pytest.fixture
def set_abc():
    a = card(0, Shape.DIAMOND, Color.RED, Count.ONE, Shading.SOLID)
    b = card(1, Shape.OVAL, Color.RED, Count.ONE, Shading.SOLID)
    c = card(2, Shape.SQUIGGLE, Color.RED, Count.ONE, Shading.SOLID)
    return a, b, c
