"""OpenCV DNN face scorer.

Runs a YOLOv8 face detector and a face quality model, both ONNX, through
cv2.dnn. The detector output is decoded from its distribution focal loss
layout: per output tensor of shape (1, C, H, W), the first 4 * REG_MAX
channels hold box side distributions, the next channel the face logit.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from avindex.config.models import ScorerConfig
from avindex.db.types import FaceObservation
from avindex.scorer.interface import ScorerError

logger = logging.getLogger(__name__)

DETECT_SIZE = 640
ASSESS_SIZE = 112
REG_MAX = 16
MIN_FACE_AREA = 30 * 30

_ASSESS_MEAN = 0.5
_ASSESS_STD = 0.5


@dataclass(frozen=True)
class Proposal:
    """A candidate face box in work image pixels (x, y, width, height)."""

    x: int
    y: int
    width: int
    height: int
    confidence: float

    @property
    def area(self) -> int:
        return self.width * self.height


def scale_to_fit(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resize so the image fits in width x height, keeping aspect."""
    ratio = min(width / image.shape[1], height / image.shape[0])
    return cv2.resize(image, None, fx=ratio, fy=ratio, interpolation=cv2.INTER_AREA)


def pad_square(image: np.ndarray) -> np.ndarray:
    """Pad the short side with black so the image is square, centred."""
    rows, cols = image.shape[:2]
    if rows == cols:
        return image
    if rows < cols:
        top = (cols - rows) // 2
        bottom = cols - rows - top
        return cv2.copyMakeBorder(image, top, bottom, 0, 0, cv2.BORDER_CONSTANT, value=0)
    left = (rows - cols) // 2
    right = rows - cols - left
    return cv2.copyMakeBorder(image, 0, 0, left, right, cv2.BORDER_CONSTANT, value=0)


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


def _softmax(x: np.ndarray) -> np.ndarray:
    e = np.exp(x - x.max(axis=-1, keepdims=True))
    return e / e.sum(axis=-1, keepdims=True)


def decode_proposals(
    output: np.ndarray, image_rows: int, confidence_threshold: float
) -> list[Proposal]:
    """Decode one detector output tensor into boxes in image pixels.

    Args:
        output: Tensor of shape (1, C, H, W).
        image_rows: Height of the square work image.
        confidence_threshold: Minimum sigmoid face probability.

    Returns:
        Proposals above the threshold, before NMS.
    """
    feat_h, feat_w = output.shape[2], output.shape[3]
    area = feat_h * feat_w
    flat = output.reshape(-1).astype(np.float32)
    distributions = flat[: area * REG_MAX * 4].reshape(4, REG_MAX, area)
    probabilities = _sigmoid(flat[area * REG_MAX * 4 : area * (REG_MAX * 4 + 1)])
    stride = math.ceil(image_rows / feat_h)
    bins = np.arange(REG_MAX, dtype=np.float32)

    proposals = []
    for idx in np.nonzero(probabilities >= confidence_threshold)[0]:
        i, j = divmod(int(idx), feat_w)
        left, top, right, bottom = (_softmax(distributions[:, :, idx]) * bins).sum(axis=1)

        cx, cy = j + 0.5, i + 0.5
        xmin = max(cx - left, 0.0)
        ymin = max(cy - top, 0.0)
        xmax = min(cx + right, float(feat_h))
        ymax = min(cy + bottom, float(feat_w))

        proposals.append(
            Proposal(
                x=int(xmin * stride),
                y=int(ymin * stride),
                width=int((xmax - xmin) * stride),
                height=int((ymax - ymin) * stride),
                confidence=float(probabilities[idx]),
            )
        )
    return proposals


def non_max_suppression(
    proposals: list[Proposal], confidence_threshold: float, nms_threshold: float
) -> list[Proposal]:
    """Apply NMS and drop boxes no larger than 30x30 px."""
    if not proposals:
        return []
    boxes = [[p.x, p.y, p.width, p.height] for p in proposals]
    scores = [p.confidence for p in proposals]
    indices = cv2.dnn.NMSBoxes(boxes, scores, confidence_threshold, nms_threshold)
    kept = [proposals[int(i)] for i in np.array(indices).reshape(-1)]
    return [p for p in kept if p.area > MIN_FACE_AREA]


class OpenCVFaceScorer:
    """Scorer backed by two ONNX models loaded once through cv2.dnn.

    Args:
        detect_model: Path to the YOLOv8 face detector.
        assess_model: Path to the face quality model.
        threads: OpenCV thread count.
        confidence_threshold: Minimum face probability.
        nms_threshold: NMS IoU threshold.

    Raises:
        ScorerError: If a model file is missing or cannot be loaded.
    """

    def __init__(
        self,
        detect_model: Path,
        assess_model: Path,
        threads: int = 2,
        confidence_threshold: float = 0.6,
        nms_threshold: float = 0.5,
    ) -> None:
        self.confidence_threshold = confidence_threshold
        self.nms_threshold = nms_threshold
        self._lock = threading.Lock()

        cv2.setNumThreads(threads)
        self._detector = self._load(detect_model)
        self._assessor = self._load(assess_model)
        logger.info(
            "Loaded face models: detector=%s assessor=%s threads=%d",
            detect_model,
            assess_model,
            threads,
        )

    @classmethod
    def from_config(cls, config: ScorerConfig) -> OpenCVFaceScorer:
        """Build a scorer from configuration. Both model paths must be set."""
        if config.detect_model is None or config.assess_model is None:
            raise ScorerError("Both detect_model and assess_model are required")
        return cls(
            detect_model=config.detect_model,
            assess_model=config.assess_model,
            threads=config.threads,
            confidence_threshold=config.confidence_threshold,
            nms_threshold=config.nms_threshold,
        )

    @staticmethod
    def _load(path: Path) -> cv2.dnn.Net:
        if not path.is_file():
            raise ScorerError(f"Model file not found: {path}")
        try:
            return cv2.dnn.readNet(str(path))
        except cv2.error as e:
            raise ScorerError(f"Cannot load model {path}: {e}") from e

    def evaluate(self, image: bytes) -> list[FaceObservation]:
        """Detect faces and assess the quality of each.

        Args:
            image: Encoded image bytes.

        Returns:
            One FaceObservation per face kept after NMS.

        Raises:
            ScorerError: If the image cannot be decoded.
        """
        decoded = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_COLOR)
        if decoded is None:
            raise ScorerError("Cannot decode image")

        with self._lock:
            work, faces = self.detect(decoded)
            return [
                FaceObservation(
                    area=face.area,
                    confidence=face.confidence,
                    quality=self.assess(self._crop(work, face)),
                )
                for face in faces
            ]

    def detect(self, image: np.ndarray) -> tuple[np.ndarray, list[Proposal]]:
        """Letterbox to 640x640 and run the detector.

        Returns:
            The padded work image and the faces found in its coordinates.
        """
        work = pad_square(scale_to_fit(image, DETECT_SIZE, DETECT_SIZE))
        blob = cv2.dnn.blobFromImage(
            work,
            1 / 255.0,
            (DETECT_SIZE, DETECT_SIZE),
            (0, 0, 0),
            swapRB=True,
            crop=False,
        )
        self._detector.setInput(blob)
        outputs = self._detector.forward(self._detector.getUnconnectedOutLayersNames())

        proposals = []
        for output in outputs:
            proposals.extend(
                decode_proposals(output, work.shape[0], self.confidence_threshold)
            )
        return work, non_max_suppression(
            proposals, self.confidence_threshold, self.nms_threshold
        )

    def assess(self, face: np.ndarray) -> float:
        """Return the mean quality output for a BGR face crop."""
        rgb = cv2.cvtColor(face, cv2.COLOR_BGR2RGB)
        rgb = cv2.resize(rgb, (ASSESS_SIZE, ASSESS_SIZE))
        normalised = (rgb.astype(np.float32) / 255.0 - _ASSESS_MEAN) / _ASSESS_STD
        self._assessor.setInput(cv2.dnn.blobFromImage(normalised))
        outputs = self._assessor.forward(self._assessor.getUnconnectedOutLayersNames())
        return float(np.mean(outputs[0][0]))

    @staticmethod
    def _crop(image: np.ndarray, face: Proposal) -> np.ndarray:
        rows, cols = image.shape[:2]
        x0, y0 = max(face.x, 0), max(face.y, 0)
        x1, y1 = min(face.x + face.width, cols), min(face.y + face.height, rows)
        return image[y0:y1, x0:x1]
