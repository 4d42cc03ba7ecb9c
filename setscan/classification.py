import asyncio
import numpy as np
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Tuple
import logging

try:
    import cv2
except ImportError:  # preprocessing needs OpenCV; the pipeline runs synthetic without it
    cv2 = None

from setscan.config import CARD_HEIGHT, CARD_WIDTH

logger = logging.getLogger(__name__)

# Output heads of the card classifier, in property order
OUTPUT_NAMES = ("shape", "color", "number", "shading")
NUM_CLASSES = 3

IMAGENET_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
IMAGENET_STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)


def softmax(logits: Sequence[float]) -> np.ndarray:
    x = np.asarray(logits, dtype=np.float64)
    exp = np.exp(x - np.max(x))
    return exp / exp.sum()


@dataclass(frozen=True)
class ClassificationResult:
    """Class indices in [0, 3) plus the softmax distribution per property."""
    shape: int
    color: int
    count: int
    shading: int
    probabilities: Dict[str, Tuple[float, ...]]

    @classmethod
    def from_logits(cls, outputs: Mapping[str, Any]) -> "ClassificationResult":
        """
        Build a result from raw per-head scores.

        A missing head falls back to all-zero logits (a uniform distribution)
        instead of failing the whole card.
        """
        indices = {}
        probabilities = {}
        for name in OUTPUT_NAMES:
            raw = outputs.get(name)
            if raw is None:
                logger.warning(f"Classifier output '{name}' missing, using zero logits")
                logits = np.zeros(NUM_CLASSES, dtype=np.float32)
            else:
                logits = np.asarray(raw, dtype=np.float32).reshape(-1)[:NUM_CLASSES]
            indices[name] = int(np.argmax(logits))
            probabilities[name] = tuple(float(p) for p in softmax(logits))
        return cls(
            shape=indices["shape"],
            color=indices["color"],
            count=indices["number"],
            shading=indices["shading"],
            probabilities=probabilities,
        )


class CardClassifier(Protocol):
    async def classify(self, card_image: np.ndarray) -> ClassificationResult:
        ...


def preprocess_for_classification(card_image: np.ndarray, input_size: int = 224) -> np.ndarray:
    """
    Prepare a canonical BGR card for the network.

    The card is first brought to the 200x300 training aspect, then to the
    square model input, converted to RGB and normalized with ImageNet stats.

    Returns:
        numpy.ndarray: float32 batch of shape (1, input_size, input_size, 3)
    """
    if cv2 is None:
        raise RuntimeError("OpenCV is required to preprocess card images")
    if card_image.shape[:2] != (CARD_HEIGHT, CARD_WIDTH):
        card_image = cv2.resize(card_image, (CARD_WIDTH, CARD_HEIGHT), interpolation=cv2.INTER_AREA)
    if card_image.ndim == 3 and card_image.shape[2] == 4:
        rgb = cv2.cvtColor(card_image, cv2.COLOR_BGRA2RGB)
    else:
        rgb = cv2.cvtColor(card_image, cv2.COLOR_BGR2RGB)
    resized = cv2.resize(rgb, (input_size, input_size), interpolation=cv2.INTER_AREA)
    normalized = (resized.astype(np.float32) / 255.0 - IMAGENET_MEAN) / IMAGENET_STD
    return np.expand_dims(normalized, axis=0)


class KerasCardClassifier:
    """
    Adapter around a multi-output Keras model with heads named
    shape, color, number and shading.
    """

    def __init__(self, model: Any, input_size: Optional[int] = None):
        self.model = model
        if input_size is None:
            input_shape = getattr(model, "input_shape", None)
            input_size = int(input_shape[1]) if input_shape and input_shape[1] else 224
        self.input_size = input_size

    def _outputs_by_name(self, raw: Any) -> Dict[str, np.ndarray]:
        if isinstance(raw, Mapping):
            return {name: np.asarray(value)[0] for name, value in raw.items()}
        names = list(getattr(self.model, "output_names", None) or OUTPUT_NAMES)
        if not isinstance(raw, (list, tuple)):
            raw = [raw]
        return {name: np.asarray(value)[0] for name, value in zip(names, raw)}

    def predict(self, card_image: np.ndarray) -> ClassificationResult:
        batch = preprocess_for_classification(card_image, self.input_size)
        raw = self.model.predict(batch, verbose=0)
        return ClassificationResult.from_logits(self._outputs_by_name(raw))

    async def classify(self, card_image: np.ndarray) -> ClassificationResult:
        # Keras inference is blocking; keep it off the event loop
        return await asyncio.to_thread(self.predict, card_image)


def load_keras_classifier(model_path: str) -> KerasCardClassifier:
    """Load a saved Keras model and warm it up with a dummy prediction."""
    from tensorflow.keras.models import load_model

    model = load_model(model_path)
    classifier = KerasCardClassifier(model)
    dummy = np.zeros((CARD_HEIGHT, CARD_WIDTH, 3), dtype=np.uint8)
    classifier.predict(dummy)
    logger.info(f"Classifier loaded from {model_path} (input {classifier.input_size}px)")
    return classifier
