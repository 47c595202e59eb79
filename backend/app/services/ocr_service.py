"""
Optical Recognizer — Tesseract-backed text recognition for scanned drawings.

OpticalRecognizer is the lifecycle contract (initialize / recognize /
terminate). TesseractRecognizer implements it with pytesseract; one instance
is created per process by the composition root (worker or API lifespan) and
passed to the DocumentProcessor explicitly.

The Tesseract binary is not re-entrant per instance here: every call is
serialised by a threading lock and executed off the event loop, so the same
instance can be shared by several coroutines and by successive Celery tasks
that each run their own event loop.

recognize_with_retry() wraps a recognizer with linear back-off:
  attempt 1 fails → sleep 1×backoff → attempt 2 fails → sleep 2×backoff → ...
Only exceptions trigger a retry. A low-confidence result is accepted and
logged.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from app import config
from app.services.errors import RecognitionError

logger = logging.getLogger("estrutura-ocr")


# ── Data Classes ──────────────────────────────────────────────────────────────

@dataclass
class WordBlock:
    text: str
    confidence: float               # 0.0–1.0
    bbox: dict[str, int]            # x0, y0, x1, y1, width, height


@dataclass
class RecognitionResult:
    text: str
    confidence: float               # mean word confidence, 0.0–1.0
    blocks: list[WordBlock] = field(default_factory=list)


# ── Contract ──────────────────────────────────────────────────────────────────

class OpticalRecognizer(ABC):
    """Lifecycle contract for any text recognizer used by the pipeline."""

    @abstractmethod
    async def initialize(self) -> None:
        ...

    @abstractmethod
    async def recognize(self, image_path: str) -> RecognitionResult:
        ...

    @abstractmethod
    async def terminate(self) -> None:
        ...

    def progress(self) -> dict:
        return {"status": "ready", "progress": 0}


# ── Tesseract implementation ─────────────────────────────────────────────────

class TesseractRecognizer(OpticalRecognizer):

    def __init__(
        self,
        language: str = config.OCR_LANGUAGE,
        timeout_seconds: float = config.OCR_TIMEOUT_SECONDS,
        confidence_threshold: float = config.OCR_CONFIDENCE_THRESHOLD,
        tesseract_config: str = config.OCR_TESSERACT_CONFIG,
    ):
        self.language = language
        self.timeout_seconds = timeout_seconds
        self.confidence_threshold = confidence_threshold
        self.tesseract_config = tesseract_config
        self._lock = threading.Lock()
        self._ready = False

    # -- lifecycle ------------------------------------------------------------

    def _initialize_blocking(self) -> None:
        if self._ready:
            logger.debug("OCR already initialized")
            return
        import pytesseract
        version = pytesseract.get_tesseract_version()
        self._ready = True
        logger.info("OCR initialized (tesseract %s, lang=%s)", version, self.language)

    async def initialize(self) -> None:
        def _init():
            with self._lock:
                self._initialize_blocking()
        await asyncio.to_thread(_init)

    async def terminate(self) -> None:
        def _terminate():
            with self._lock:
                if self._ready:
                    self._ready = False
                    logger.info("OCR terminated")
        await asyncio.to_thread(_terminate)

    def progress(self) -> dict:
        if not self._ready:
            return {"status": "initializing api", "progress": 0}
        return {"status": "ready", "progress": 0}

    # -- recognition ----------------------------------------------------------

    def _recognize_blocking(self, image_path: str) -> RecognitionResult:
        import pytesseract
        from PIL import Image

        with self._lock:
            self._initialize_blocking()
            with Image.open(image_path) as image:
                data = pytesseract.image_to_data(
                    image,
                    lang=self.language,
                    config=self.tesseract_config,
                    timeout=self.timeout_seconds,
                    output_type=pytesseract.Output.DICT,
                )
        return _result_from_tesseract_data(data)

    async def recognize(self, image_path: str) -> RecognitionResult:
        try:
            result = await asyncio.to_thread(self._recognize_blocking, image_path)
        except Exception as exc:
            logger.error("Text recognition failed for %s: %s", image_path, exc)
            raise

        if result.confidence < self.confidence_threshold:
            logger.warning(
                "Low recognition confidence",
                extra={
                    "image_path": image_path,
                    "confidence": round(result.confidence, 3),
                    "threshold": self.confidence_threshold,
                },
            )
        return result


def _result_from_tesseract_data(data: dict) -> RecognitionResult:
    """Rebuild line-structured text and word blocks from image_to_data output."""
    blocks: list[WordBlock] = []
    lines: dict[tuple, list[str]] = {}

    for i, raw in enumerate(data.get("text", [])):
        word = (raw or "").strip()
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            conf = -1.0
        if not word or conf < 0:
            continue

        x, y = int(data["left"][i]), int(data["top"][i])
        w, h = int(data["width"][i]), int(data["height"][i])
        blocks.append(WordBlock(
            text=word,
            confidence=conf / 100.0,
            bbox={"x0": x, "y0": y, "x1": x + w, "y1": y + h, "width": w, "height": h},
        ))
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(word)

    text = "\n".join(" ".join(words) for words in lines.values())
    confidence = sum(b.confidence for b in blocks) / len(blocks) if blocks else 0.0
    return RecognitionResult(text=text, confidence=confidence, blocks=blocks)


# ── Retry wrapper ─────────────────────────────────────────────────────────────

async def recognize_with_retry(
    recognizer: OpticalRecognizer,
    image_path: str,
    max_retries: int = config.OCR_MAX_RETRIES,
    backoff_seconds: float = config.OCR_RETRY_BACKOFF_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RecognitionResult:
    """Recognize ``image_path``, retrying hard failures with linear back-off.

    Raises RecognitionError chained to the last underlying exception once
    every attempt has failed.
    """
    attempts = max(1, max_retries)
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            return await recognizer.recognize(image_path)
        except Exception as exc:
            last_error = exc
            logger.warning(
                "Recognition attempt %d/%d failed: %s", attempt, attempts, exc,
            )
            if attempt < attempts:
                await sleep(attempt * backoff_seconds)

    raise RecognitionError(
        f"Text recognition failed after {attempts} attempts: {last_error}"
    ) from last_error
