"""
Pairing engine: groups a flat batch of uploaded files into audio/text pairs
keyed by their shared filename stem.

Extension matching is case-insensitive, the stem is matched case-sensitively.
A pair may have only one side; it never has neither.
"""

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

import structlog

from qaflow.config import settings
from qaflow.observability.metrics import blobs_received_total, blobs_rejected_total

logger = structlog.get_logger(__name__)


def discard_file_safe(path: Optional[Path]) -> None:
    """Remove a staged temp file. Never raises."""
    if path is None:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning("temp_file_cleanup_failed", path=str(path), error=str(e))


@dataclass
class UploadedBlob:
    """A single uploaded file, staged on local disk."""
    filename: str
    path: Path
    content_type: Optional[str] = None

    def read_bytes(self) -> bytes:
        return Path(self.path).read_bytes()

    def discard(self) -> None:
        discard_file_safe(self.path)


@dataclass
class PairCandidate:
    """Audio and/or text blob sharing one base name."""
    base_name: str
    audio: Optional[UploadedBlob] = None
    text: Optional[UploadedBlob] = None

    @property
    def fully_mapped(self) -> bool:
        return self.audio is not None and self.text is not None

    def blobs(self) -> list[UploadedBlob]:
        return [b for b in (self.audio, self.text) if b is not None]

    def discard(self) -> None:
        for blob in self.blobs():
            blob.discard()


def split_filename(filename: str) -> tuple[str, str]:
    """
    Split an uploaded filename into (base name, lowercased extension).
    Directory components are dropped, whether sent with / or \\.
    """
    name = PurePosixPath(filename.replace("\\", "/")).name
    suffix = PurePosixPath(name).suffix
    if not suffix:
        return name, ""
    return name[: -len(suffix)], suffix.lower()


def build_pairs(
    blobs: Iterable[UploadedBlob],
    audio_extension: Optional[str] = None,
    text_extension: Optional[str] = None,
) -> list[PairCandidate]:
    """
    Group blobs by base name, preserving first-encounter order.

    Blobs with any other extension are discarded on the spot and do not
    count towards the pair set. When the same side of a base name appears
    twice, the later blob wins and the earlier one is discarded.
    """
    audio_ext = (audio_extension or settings.AUDIO_EXTENSION).lower()
    text_ext = (text_extension or settings.TEXT_EXTENSION).lower()

    pairs: dict[str, PairCandidate] = {}
    rejected = 0

    for blob in blobs:
        base_name, ext = split_filename(blob.filename)
        if ext not in (audio_ext, text_ext) or not base_name:
            logger.info("unsupported_file_dropped", filename=blob.filename)
            blob.discard()
            rejected += 1
            continue

        pair = pairs.setdefault(base_name, PairCandidate(base_name=base_name))
        side = "audio" if ext == audio_ext else "text"
        previous = getattr(pair, side)
        if previous is not None:
            logger.info("duplicate_side_replaced", base_name=base_name, side=side)
            previous.discard()
        setattr(pair, side, blob)
        blobs_received_total.labels(kind=side).inc()

    if rejected:
        blobs_rejected_total.inc(rejected)

    result = list(pairs.values())
    logger.info("pairs_built", unique_base_names=len(result), rejected=rejected)
    return result
