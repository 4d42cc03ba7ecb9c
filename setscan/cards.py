from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd

BBox = Tuple[float, float, float, float]

CARD_COLUMNS = ["id", "Shape", "Color", "Count", "Shading", "Confidence", "Coordinates"]


class Shape(IntEnum):
    DIAMOND = 0
    OVAL = 1
    SQUIGGLE = 2

    @property
    def label(self) -> str:
        return self.name.lower()


class Color(IntEnum):
    RED = 0
    GREEN = 1
    PURPLE = 2

    @property
    def label(self) -> str:
        return self.name.lower()


class Count(IntEnum):
    ONE = 0
    TWO = 1
    THREE = 2

    @property
    def label(self) -> int:
        return int(self) + 1


class Shading(IntEnum):
    SOLID = 0
    STRIPED = 1
    EMPTY = 2

    @property
    def label(self) -> str:
        return self.name.lower()


# Ordered lookup tables used to turn classifier indices into properties
SHAPES = tuple(Shape)
COLORS = tuple(Color)
COUNTS = tuple(Count)
SHADINGS = tuple(Shading)

PROPERTY_NAMES = ("shape", "color", "count", "shading")


class InvalidPropertyIndex(ValueError):
    """Raised when a classifier index falls outside a 3-value property domain."""


@dataclass(frozen=True, eq=False)
class Region:
    """A detected card outline in source-image pixel coordinates."""
    bbox: BBox
    corners: np.ndarray  # (4, 2) float32, TL, TR, BR, BL
    confidence: float


@dataclass(frozen=True, eq=False)
class WithCorners:
    bbox: BBox
    corners: np.ndarray


@dataclass(frozen=True)
class BoxOnly:
    bbox: BBox


Placement = Union[WithCorners, BoxOnly]


@dataclass(frozen=True)
class CardProperties:
    shape: Shape
    color: Color
    count: Count
    shading: Shading

    @property
    def key(self) -> int:
        """Packed base-3 signature, unique per property combination."""
        return pack_key(self.shape, self.color, self.count, self.shading)


@dataclass(frozen=True)
class Card:
    id: int
    placement: Placement
    shape: Shape
    color: Color
    count: Count
    shading: Shading
    confidence: float = 1.0

    @property
    def bbox(self) -> BBox:
        return self.placement.bbox

    @property
    def key(self) -> int:
        return pack_key(self.shape, self.color, self.count, self.shading)

    @property
    def properties(self) -> CardProperties:
        return CardProperties(self.shape, self.color, self.count, self.shading)

    def describe(self) -> str:
        n = self.count.label
        plural = "s" if n > 1 else ""
        return f"{n} {self.shading.label} {self.color.label} {self.shape.label}{plural}"

    def to_dict(self) -> Dict[str, Any]:
        corners = None
        if isinstance(self.placement, WithCorners):
            corners = [[float(x), float(y)] for x, y in self.placement.corners]
        return {
            "id": self.id,
            "bbox": [float(v) for v in self.bbox],
            "corners": corners,
            "shape": self.shape.label,
            "color": self.color.label,
            "count": self.count.label,
            "shading": self.shading.label,
            "confidence": float(self.confidence),
        }


@dataclass(frozen=True)
class SetTriple:
    cards: Tuple[Card, Card, Card]
    indices: Tuple[int, int, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indices": list(self.indices),
            "card_ids": [card.id for card in self.cards],
        }


def pack_key(shape: int, color: int, count: int, shading: int) -> int:
    return ((int(shape) * 3 + int(color)) * 3 + int(count)) * 3 + int(shading)


def _lookup(table: Sequence, index: int, name: str):
    if not 0 <= int(index) < len(table):
        raise InvalidPropertyIndex(f"{name} index {index} outside [0, {len(table)})")
    return table[int(index)]


def indices_to_card(shape_idx: int, color_idx: int, count_idx: int, shading_idx: int) -> CardProperties:
    """
    Convert classifier class indices to card properties.

    Raises:
        InvalidPropertyIndex: if any index is outside [0, 3).
    """
    return CardProperties(
        shape=_lookup(SHAPES, shape_idx, "shape"),
        color=_lookup(COLORS, color_idx, "color"),
        count=_lookup(COUNTS, count_idx, "count"),
        shading=_lookup(SHADINGS, shading_idx, "shading"),
    )


def make_card(card_id: int, properties: CardProperties, placement: Placement,
              confidence: float = 1.0) -> Card:
    return Card(
        id=card_id,
        placement=placement,
        shape=properties.shape,
        color=properties.color,
        count=properties.count,
        shading=properties.shading,
        confidence=confidence,
    )


def cards_to_dataframe(cards: List[Card]) -> pd.DataFrame:
    """Tabulate cards one row per card, in frame order."""
    if not cards:
        return pd.DataFrame(columns=CARD_COLUMNS)
    rows = []
    for card in cards:
        x1, y1, x2, y2 = card.bbox
        rows.append({
            "id": card.id,
            "Shape": card.shape.label,
            "Color": card.color.label,
            "Count": card.count.label,
            "Shading": card.shading.label,
            "Confidence": float(card.confidence),
            "Coordinates": f"{int(round(x1))}, {int(round(y1))}, {int(round(x2))}, {int(round(y2))}",
        })
    return pd.DataFrame(rows, columns=CARD_COLUMNS)


def cards_from_dataframe(card_df: pd.DataFrame) -> List[Card]:
    """
    Rebuild bounding-box-only cards from a table produced by cards_to_dataframe.

    Ids are reassigned to row positions so they stay valid list indices.
    """
    cards = []
    for position, record in enumerate(card_df.to_dict("records")):
        coords = tuple(float(v) for v in str(record["Coordinates"]).split(","))
        props = CardProperties(
            shape=Shape[str(record["Shape"]).upper()],
            color=Color[str(record["Color"]).upper()],
            count=Count(int(record["Count"]) - 1),
            shading=Shading[str(record["Shading"]).upper()],
        )
        cards.append(make_card(position, props, BoxOnly(bbox=coords),
                               float(record.get("Confidence", 1.0))))
    return cards
