import numpy as np
from collections import defaultdict
from typing import Optional
import logging

try:
    import cv2
except ImportError:  # annotation is skipped without OpenCV
    cv2 = None

from setscan.cards import BoxOnly, Card, WithCorners

logger = logging.getLogger(__name__)

# BGR colors cycled per set
COLORS = [
    (255, 0, 0),   # Blue
    (0, 255, 0),   # Green
    (0, 0, 255),   # Red
    (255, 255, 0), # Cyan
    (255, 0, 255), # Magenta
    (0, 255, 255)  # Yellow
]
CARD_OUTLINE = (200, 200, 200)


def _card_polygon(card: Card, expansion: int, img_width: int, img_height: int) -> np.ndarray:
    """Outline of a card grown outward by `expansion` pixels, clipped to the image."""
    placement = card.placement
    if isinstance(placement, WithCorners):
        pts = np.asarray(placement.corners, dtype=np.float32)
        centroid = pts.mean(axis=0)
        offsets = pts - centroid
        norms = np.linalg.norm(offsets, axis=1, keepdims=True)
        pts = pts + offsets / np.maximum(norms, 1e-6) * expansion
    elif isinstance(placement, BoxOnly):
        x1, y1, x2, y2 = placement.bbox
        pts = np.array([[x1 - expansion, y1 - expansion],
                        [x2 + expansion, y1 - expansion],
                        [x2 + expansion, y2 + expansion],
                        [x1 - expansion, y2 + expansion]], dtype=np.float32)
    else:
        raise TypeError(f"Unsupported card placement: {type(placement).__name__}")
    pts[:, 0] = np.clip(pts[:, 0], 0, img_width - 1)
    pts[:, 1] = np.clip(pts[:, 1], 0, img_height - 1)
    return np.round(pts).astype(np.int32)


def draw_sets_on_image(board_image: np.ndarray, result, highlight: Optional[int] = None) -> np.ndarray:
    """
    Draw card outlines and the detected sets on a copy of the board image.

    Cards that belong to several sets get one nested outline per set so all
    memberships stay visible.

    Args:
        board_image (numpy.ndarray): Board image in BGR format.
        result (FrameResult): Cards and sets for this image.
        highlight (int): Only draw this set index when given.

    Returns:
        numpy.ndarray: The annotated board image.
    """
    result_image = board_image.copy()
    if cv2 is None:
        logger.warning("OpenCV not available, returning the board image unannotated")
        return result_image
    if result_image.ndim == 2:
        result_image = cv2.cvtColor(result_image, cv2.COLOR_GRAY2BGR)

    img_height, img_width = result_image.shape[:2]
    img_diagonal = np.sqrt(img_width ** 2 + img_height ** 2)

    # Scale parameters based on image size
    base_thickness = max(1, int(img_diagonal * 0.004))
    base_expansion = max(5, int(img_diagonal * 0.008))
    font_scale = max(0.5, img_diagonal * 0.0007)

    for card in result.cards:
        poly = _card_polygon(card, 0, img_width, img_height)
        cv2.polylines(result_image, [poly], True, CARD_OUTLINE, max(1, base_thickness // 2))

    sets = list(enumerate(result.sets))
    if highlight is not None:
        sets = [(idx, triple) for idx, triple in sets if idx == highlight]
    if not sets:
        return result_image

    # card index -> indices of the sets it belongs to
    card_set_membership = defaultdict(list)
    for set_idx, triple in sets:
        for card_idx in triple.indices:
            card_set_membership[card_idx].append(set_idx)

    for set_idx, triple in sets:
        color = COLORS[set_idx % len(COLORS)]
        for i, (card_idx, card) in enumerate(zip(triple.indices, triple.cards)):
            # Nested outlines: first membership hugs the card, later ones step outward (max 2 steps)
            appearance_idx = card_set_membership[card_idx].index(set_idx)
            expansion = min(appearance_idx, 2) * base_expansion
            poly = _card_polygon(card, expansion, img_width, img_height)
            cv2.polylines(result_image, [poly], True, color, base_thickness)

            # Only label the first card in each set
            if i == 0:
                text_margin = max(5, int(img_diagonal * 0.008))
                x = int(poly[:, 0].min())
                text_y = max(text_margin, int(poly[:, 1].min()) - text_margin)
                cv2.putText(
                    result_image,
                    f"Set {set_idx + 1}",
                    (x, text_y),
                    cv2.FONT_HERSHEY_SIMPLEX,
                    font_scale,
                    color,
                    base_thickness
                )

    return result_image
