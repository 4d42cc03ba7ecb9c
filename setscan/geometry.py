import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from setscan.cards import BBox, Region


def order_corners(pts) -> np.ndarray:
    """
    Order 4 points as [top-left, top-right, bottom-right, bottom-left].

    Top-left/bottom-right carry the smallest/largest x+y, top-right/bottom-left
    the smallest/largest y-x, so the result does not depend on input order.
    """
    p = np.asarray(pts, dtype=np.float32).reshape(4, 2)
    s = p[:, 0] + p[:, 1]
    d = p[:, 1] - p[:, 0]
    return np.array([p[np.argmin(s)], p[np.argmin(d)], p[np.argmax(s)], p[np.argmax(d)]],
                    dtype=np.float32)


def bbox_from_points(pts) -> BBox:
    p = np.asarray(pts, dtype=np.float32).reshape(-1, 2)
    return (float(p[:, 0].min()), float(p[:, 1].min()),
            float(p[:, 0].max()), float(p[:, 1].max()))


def box_area(bbox: BBox) -> float:
    x1, y1, x2, y2 = bbox
    return max(0.0, x2 - x1) * max(0.0, y2 - y1)


def overlap_ratio(a: BBox, b: BBox) -> float:
    """Intersection area divided by the smaller of the two box areas."""
    ax1, ay1, ax2, ay2 = a
    bx1, by1, bx2, by2 = b
    overlap_x = max(0.0, min(ax2, bx2) - max(ax1, bx1))
    overlap_y = max(0.0, min(ay2, by2) - max(ay1, by1))
    min_area = min(box_area(a), box_area(b))
    if min_area <= 0:
        return 0.0
    return (overlap_x * overlap_y) / min_area


def boxes_overlap(a: BBox, b: BBox, threshold: float = 0.5) -> bool:
    return overlap_ratio(a, b) > threshold


def visible_fraction(bbox: BBox, width: float, height: float) -> float:
    """Share of the box area that lies inside a width x height image."""
    area = box_area(bbox)
    if area <= 0:
        return 0.0
    x1, y1, x2, y2 = bbox
    visible_x = max(0.0, min(x2, width) - max(x1, 0.0))
    visible_y = max(0.0, min(y2, height) - max(y1, 0.0))
    return (visible_x * visible_y) / area


def center(bbox: BBox) -> Tuple[float, float]:
    x1, y1, x2, y2 = bbox
    return (x1 + x2) / 2, (y1 + y2) / 2


def deduplicate_regions(regions: Sequence[Region], threshold: float = 0.4,
                        accepted: Optional[List[Region]] = None) -> List[Region]:
    """Keep regions in order, dropping any that overlap an already kept one."""
    kept = accepted if accepted is not None else []
    for region in regions:
        if any(boxes_overlap(existing.bbox, region.bbox, threshold) for existing in kept):
            continue
        kept.append(region)
    return kept


def sort_reading_order(regions: Sequence[Region], image_height: float, rows: int = 6) -> List[Region]:
    """Sort top-to-bottom in coarse row bands, then left-to-right."""
    row_height = image_height / rows if image_height > 0 else 1.0

    def _key(region: Region):
        cx, cy = center(region.bbox)
        return math.floor(cy / row_height), cx

    return sorted(regions, key=_key)
