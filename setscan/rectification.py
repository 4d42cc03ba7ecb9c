import numpy as np
from typing import List, Optional, Sequence
import logging

try:
    import cv2
except ImportError:  # rectification returns None without OpenCV
    cv2 = None

from setscan.cards import Region
from setscan.config import CARD_HEIGHT, CARD_WIDTH
from setscan.detection import to_bgr

logger = logging.getLogger(__name__)


def portrait_corners(corners) -> np.ndarray:
    """
    Rotate the corner assignment by one position when the quad is wider than
    tall, so the warp always produces a portrait card.

    Args:
        corners: 4 points ordered TL, TR, BR, BL

    Returns:
        numpy.ndarray: (4, 2) float32 corners to map onto TL, TR, BR, BL
    """
    tl, tr, br, bl = np.asarray(corners, dtype=np.float32).reshape(4, 2)
    width = np.hypot(*(tr - tl))
    height = np.hypot(*(bl - tl))
    if width > height:
        tl, tr, br, bl = bl, tl, tr, br
    return np.array([tl, tr, br, bl], dtype=np.float32)


def rectify_card(image: np.ndarray, corners, out_w: int = CARD_WIDTH,
                 out_h: int = CARD_HEIGHT) -> Optional[np.ndarray]:
    """
    Warp one detected card onto an upright out_w x out_h canvas.

    Args:
        image (numpy.ndarray): Source frame (gray, BGR or BGRA)
        corners: 4 points ordered TL, TR, BR, BL in source coordinates
        out_w (int): Canonical width
        out_h (int): Canonical height

    Returns:
        numpy.ndarray: BGR card image of shape (out_h, out_w, 3), or None when
        OpenCV is unavailable or the corners are degenerate
    """
    if cv2 is None:
        logger.warning("OpenCV not available, cannot rectify card")
        return None

    src = portrait_corners(corners)
    if not np.isfinite(src).all() or abs(cv2.contourArea(src)) < 1.0:
        logger.warning("Degenerate card corners, skipping rectification")
        return None

    dst = np.array([[0, 0],
                    [out_w - 1, 0],
                    [out_w - 1, out_h - 1],
                    [0, out_h - 1]], dtype=np.float32)
    try:
        transform = cv2.getPerspectiveTransform(src, dst)
        return cv2.warpPerspective(to_bgr(image), transform, (out_w, out_h),
                                   flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE)
    except (cv2.error, ValueError) as e:
        logger.warning(f"Card rectification failed: {e}")
        return None


def rectify_regions(image: np.ndarray, regions: Sequence[Region], out_w: int = CARD_WIDTH,
                    out_h: int = CARD_HEIGHT) -> List[Optional[np.ndarray]]:
    """Rectify every region, keeping None placeholders for failures."""
    return [rectify_card(image, region.corners, out_w, out_h) for region in regions]
