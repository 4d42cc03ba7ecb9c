import numpy as np
from typing import List, Optional, Tuple
import logging

try:
    import cv2
except ImportError:  # detection degrades to "no cards" without OpenCV
    cv2 = None

from setscan.cards import Region
from setscan.config import DEFAULT_DETECTOR_CONFIG, DetectionStrategy, DetectorConfig
from setscan.geometry import (
    bbox_from_points,
    deduplicate_regions,
    order_corners,
    sort_reading_order,
    visible_fraction,
)

logger = logging.getLogger(__name__)


def opencv_available() -> bool:
    return cv2 is not None


def to_bgr(image: np.ndarray) -> np.ndarray:
    """
    Return a 3-channel uint8 BGR view of a gray, BGR or BGRA image.

    Float images in [0, 1] are scaled to [0, 255]; other dtypes are clipped
    to the uint8 range.

    Raises:
        ValueError: the channel count is not 1, 3 or 4
    """
    if image.dtype != np.uint8:
        if np.issubdtype(image.dtype, np.floating) and image.size and float(np.nanmax(image)) <= 1.0:
            image = image * 255.0
        image = np.clip(np.nan_to_num(image), 0, 255).astype(np.uint8)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim != 3:
        raise ValueError(f"Unsupported image shape {image.shape}")
    channels = image.shape[2]
    if channels == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if channels != 3:
        raise ValueError(f"Unsupported channel count {channels}")
    return image


def downscale(image: np.ndarray, max_side: int) -> Tuple[np.ndarray, float]:
    """
    Shrink the image so its longer side is at most max_side.

    Returns:
        tuple: (image, scale) where scale maps full-resolution coordinates to
               the returned image (1.0 when no resize happened)
    """
    h, w = image.shape[:2]
    if max(h, w) <= max_side:
        return image, 1.0
    scale = max_side / max(h, w)
    new_size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
    resized = cv2.resize(image, new_size, interpolation=cv2.INTER_AREA)
    logger.debug(f"Downscaled image from {w}x{h} to {new_size[0]}x{new_size[1]}")
    return resized, scale


def build_card_mask(img: np.ndarray, saturation: np.ndarray, value: np.ndarray,
                    strategy: DetectionStrategy, blur_kernel: int = 5) -> np.ndarray:
    """
    Combine a white-ish mask (low saturation AND high value) with Canny edges,
    then close small gaps with the strategy's elliptical kernel.
    """
    _, s_mask = cv2.threshold(saturation, strategy.saturation_thresh, 255, cv2.THRESH_BINARY_INV)
    _, v_mask = cv2.threshold(value, strategy.value_thresh, 255, cv2.THRESH_BINARY)
    white_mask = cv2.bitwise_and(s_mask, v_mask)

    gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    gray = cv2.GaussianBlur(gray, (blur_kernel, blur_kernel), 0)
    edges = cv2.Canny(gray, strategy.canny_low, strategy.canny_high)

    combined = cv2.bitwise_or(edges, white_mask)
    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (strategy.morph_kernel, strategy.morph_kernel))
    return cv2.morphologyEx(combined, cv2.MORPH_CLOSE, kernel, iterations=1)


def _find_external_contours(mask: np.ndarray):
    # OpenCV 3 returns (image, contours, hierarchy), OpenCV 4 (contours, hierarchy)
    found = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    return found[-2]


def evaluate_contour(contour: np.ndarray, saturation: np.ndarray, scale: float,
                     full_size: Tuple[float, float], config: DetectorConfig) -> Optional[Region]:
    """
    Run the geometric and photometric filters on one contour.

    Filters short-circuit in order: area, rotated-rect size, fill ratio,
    aspect ratio, saturation variance, visibility inside the frame.

    Returns:
        Region in full-resolution coordinates, or None if rejected.
    """
    img_area = float(saturation.shape[0] * saturation.shape[1])
    area = cv2.contourArea(contour)
    if area < img_area * config.min_area_ratio or area > img_area * config.max_area_ratio:
        return None

    rect = cv2.minAreaRect(contour)
    w, h = rect[1]
    rect_area = w * h
    if rect_area <= 1:
        return None

    fill_ratio = area / rect_area
    if fill_ratio < config.min_fill_ratio:
        logger.debug(f"Rejected contour: fill ratio {fill_ratio:.2f}")
        return None

    aspect = max(h / max(1.0, w), w / max(1.0, h))
    low, high = config.aspect_range
    if aspect < low or aspect > high:
        logger.debug(f"Rejected contour: aspect {aspect:.2f}")
        return None

    # Blank white/gray blobs have almost no saturation spread; cards carry colored symbols
    x, y, bw, bh = cv2.boundingRect(contour)
    _, stddev = cv2.meanStdDev(saturation[y:y + bh, x:x + bw])
    sat_std = float(stddev[0][0])
    if sat_std < config.min_saturation_std:
        logger.debug(f"Rejected contour: saturation std {sat_std:.1f}")
        return None

    corners = order_corners(cv2.boxPoints(rect) / scale)
    bbox = bbox_from_points(corners)
    full_w, full_h = full_size
    if visible_fraction(bbox, full_w, full_h) < config.min_visible_ratio:
        logger.debug("Rejected contour: mostly outside the frame")
        return None

    return Region(bbox=bbox, corners=corners, confidence=min(1.0, float(fill_ratio)))


def detect_with_strategy(img: np.ndarray, saturation: np.ndarray, value: np.ndarray, scale: float,
                         full_size: Tuple[float, float], strategy: DetectionStrategy,
                         config: DetectorConfig = DEFAULT_DETECTOR_CONFIG) -> List[Region]:
    """Run one threshold strategy over the downscaled image."""
    mask = build_card_mask(img, saturation, value, strategy, config.blur_kernel)

    regions = []
    for contour in _find_external_contours(mask):
        region = evaluate_contour(contour, saturation, scale, full_size, config)
        if region is not None:
            regions.append(region)
    logger.debug(f"Strategy '{strategy.name}' accepted {len(regions)} regions")
    return regions


def detect_cards_from_image(board_image: np.ndarray,
                            config: DetectorConfig = DEFAULT_DETECTOR_CONFIG) -> List[Region]:
    """
    Detect card regions with an ensemble of contour strategies.

    Every strategy runs on the same downscaled image; results are merged in
    strategy order, dropping regions that overlap an already accepted one,
    then sorted into reading order.

    Args:
        board_image (numpy.ndarray): Gray, BGR or BGRA image
        config (DetectorConfig): Thresholds and strategies

    Returns:
        list: Regions with full-resolution bbox, ordered corners and confidence
    """
    if cv2 is None:
        logger.warning("OpenCV not available, skipping card detection")
        return []
    if board_image is None or board_image.size == 0:
        logger.warning("Empty image passed to card detection")
        return []

    try:
        bgr = to_bgr(board_image)
        full_h, full_w = bgr.shape[:2]
        img, scale = downscale(bgr, config.max_side)
        _, saturation, value = cv2.split(cv2.cvtColor(img, cv2.COLOR_BGR2HSV))

        accepted: List[Region] = []
        for strategy in config.strategies:
            detections = detect_with_strategy(img, saturation, value, scale, (full_w, full_h), strategy, config)
            deduplicate_regions(detections, config.dedup_overlap, accepted)
    except (cv2.error, ValueError) as e:
        logger.warning(f"Card detection failed on image {board_image.shape} {board_image.dtype}: {e}")
        return []

    ordered = sort_reading_order(accepted, full_h, config.reading_rows)
    logger.info(f"Detected {len(ordered)} card regions")
    return ordered
