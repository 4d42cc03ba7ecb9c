import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

import numpy as np
import pandas as pd

from setscan import detection
from setscan.cards import Card, SetTriple, WithCorners, cards_to_dataframe, indices_to_card, make_card
from setscan.classification import CardClassifier
from setscan.config import CARD_HEIGHT, CARD_WIDTH, DEFAULT_DETECTOR_CONFIG, DetectorConfig
from setscan.rectification import rectify_card
from setscan.set_finder import analyze_set, find_all_sets
from setscan.synthetic import generate_synthetic_cards

logger = logging.getLogger(__name__)

MODE_PIPELINE = "pipeline"
MODE_SYNTHETIC = "synthetic"


@dataclass
class FrameResult:
    """Everything produced for one frame; replaced wholesale by the next one."""
    cards: List[Card]
    sets: List[SetTriple]
    timestamp: float
    inference_time_ms: float
    mode: str = MODE_PIPELINE
    detections: int = 0

    def cards_frame(self) -> pd.DataFrame:
        return cards_to_dataframe(self.cards)

    def to_dict(self) -> Dict[str, Any]:
        sets = []
        for triple in self.sets:
            entry = triple.to_dict()
            entry["analysis"] = analyze_set(triple)
            sets.append(entry)
        return {
            "mode": self.mode,
            "timestamp": self.timestamp,
            "inference_time_ms": round(self.inference_time_ms, 2),
            "detections": self.detections,
            "cards": [card.to_dict() for card in self.cards],
            "sets": sets,
        }


class FrameProcessor:
    """
    Runs detection, rectification, classification and set search for one
    frame at a time.

    A frame arriving while another is in flight is dropped, not queued.
    """

    def __init__(self, classifier: Optional[CardClassifier] = None,
                 detector_config: DetectorConfig = DEFAULT_DETECTOR_CONFIG,
                 synthetic_seed: int = 0, force_synthetic: bool = False):
        self.classifier = classifier
        self.detector_config = detector_config
        self.synthetic_seed = synthetic_seed
        self.force_synthetic = force_synthetic
        self._in_flight = threading.Lock()

    @property
    def is_processing(self) -> bool:
        return self._in_flight.locked()

    @property
    def synthetic(self) -> bool:
        return self.force_synthetic or self.classifier is None or not detection.opencv_available()

    async def process_frame(self, image: np.ndarray) -> Optional[FrameResult]:
        """
        Process one frame.

        Returns:
            FrameResult, or None when another frame is still being processed
        """
        if not self._in_flight.acquire(blocking=False):
            logger.debug("Frame dropped: previous frame still processing")
            return None

        start = time.perf_counter()
        try:
            if self.synthetic:
                cards = generate_synthetic_cards(seed=self.synthetic_seed)
                mode, detections = MODE_SYNTHETIC, len(cards)
            else:
                cards, detections = await self._classify_frame(image)
                mode = MODE_PIPELINE

            sets = find_all_sets(cards)
            result = FrameResult(
                cards=cards,
                sets=sets,
                timestamp=time.time(),
                inference_time_ms=(time.perf_counter() - start) * 1000,
                mode=mode,
                detections=detections,
            )
            logger.info(f"Frame processed ({mode}): {len(cards)} cards, {len(sets)} sets "
                        f"in {result.inference_time_ms:.1f} ms")
            return result
        finally:
            self._in_flight.release()

    async def _classify_frame(self, image: np.ndarray):
        regions = detection.detect_cards_from_image(image, self.detector_config)
        cards: List[Card] = []

        # Sequential on purpose: one rectified card and one inference buffer at a time
        for idx, region in enumerate(regions):
            card_image = rectify_card(image, region.corners, CARD_WIDTH, CARD_HEIGHT)
            if card_image is None:
                logger.warning(f"Card {idx}: rectification failed, skipping")
                continue
            try:
                classification = await self.classifier.classify(card_image)
            except Exception as e:
                logger.warning(f"Card {idx}: classification failed ({e}), skipping")
                continue
            props = indices_to_card(classification.shape, classification.color,
                                    classification.count, classification.shading)
            placement = WithCorners(bbox=region.bbox, corners=region.corners)
            cards.append(make_card(len(cards), props, placement, region.confidence))

        return cards, len(regions)
