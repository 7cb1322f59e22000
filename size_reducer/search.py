"""
search.py - Size-targeting quality search.

Both reducers share one loop: encode at a quality, measure, decide.

- Step-decay: 0.95, 0.90, ... down to the floor (single images)
- Candidate list: a short fixed descending list (documents)

First candidate within budget wins. When every candidate is too large the
last one tried is returned, flagged target_met=False. Qualities are tried
strictly in order and a rejected quality is never revisited.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .config import MIN_QUALITY, MIN_TARGET_BYTES, QUALITY_STEP, START_QUALITY
from .errors import CollaboratorFailure, ConfigurationError, ReducerError

logger = logging.getLogger(__name__)

# Rounding applied to stepped qualities so 0.95 - 18 * 0.05 lands on 0.05
_QUALITY_DIGITS = 6


@dataclass(frozen=True)
class TargetBudget:
    """Maximum acceptable output size."""
    max_size_bytes: int

    @classmethod
    def from_kb(cls, kb: float) -> "TargetBudget":
        if kb is None or not math.isfinite(kb):
            raise ConfigurationError(f"Target size must be a finite number of KB, got {kb}")
        return cls(int(kb * 1024))

    def validate(self, minimum: int = MIN_TARGET_BYTES) -> "TargetBudget":
        size = self.max_size_bytes
        if isinstance(size, bool) or not isinstance(size, int):
            raise ConfigurationError(f"Target size must be a whole number of bytes, got {size!r}")
        if size < minimum:
            raise ConfigurationError(
                f"Target size {self.max_size_bytes} bytes is below the "
                f"minimum of {minimum:,} bytes"
            )
        return self


def require_target(target: Optional[TargetBudget], minimum: int) -> TargetBudget:
    """Validate a caller-supplied budget, rejecting a missing one."""
    if target is None:
        raise ConfigurationError("A target size is required")
    return target.validate(minimum)


@dataclass(frozen=True)
class ProgressEvent:
    """Structured progress record. Presentation is up to the consumer."""
    phase: str
    quality: Optional[float] = None
    size_bytes: Optional[int] = None
    page: Optional[int] = None
    page_count: Optional[int] = None


ProgressCallback = Callable[[ProgressEvent], None]


def report(progress: Optional[ProgressCallback], event: ProgressEvent):
    """Deliver a progress event. A failing sink never stops the search."""
    if progress is None:
        return
    try:
        progress(event)
    except Exception as e:
        logger.warning(f"Progress callback failed on {event.phase} event: {e}")


@dataclass
class CandidateResult:
    """One encode attempt."""
    quality: float
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class SearchOutcome:
    """Final answer of a search: the last candidate examined."""
    final_bytes: bytes
    final_quality: float
    achieved_size_bytes: int
    target_met: bool
    attempts: List[Tuple[float, int]] = field(default_factory=list)

    @property
    def qualities_tried(self) -> List[float]:
        return [q for q, _ in self.attempts]


def step_decay_qualities(
    start: float = START_QUALITY,
    step: float = QUALITY_STEP,
    floor: float = MIN_QUALITY
) -> List[float]:
    """
    Descending qualities from start by step, ending exactly at floor.

    Returns:
        e.g. [0.95, 0.9, ..., 0.1, 0.05] for the defaults
    """
    if not 0 < floor <= start <= 1:
        raise ConfigurationError(
            f"Need 0 < floor <= start <= 1, got floor={floor}, start={start}"
        )
    if step <= 0:
        raise ConfigurationError(f"Quality step must be positive, got {step}")

    qualities = []
    quality = start
    while True:
        qualities.append(quality)
        if quality <= floor:
            break
        quality = round(max(floor, quality - step), _QUALITY_DIGITS)
    return qualities


def validate_candidates(candidates: Iterable[float]) -> Tuple[float, ...]:
    """Check a candidate list is non-empty, strictly descending and in (0, 1]."""
    if candidates is None:
        raise ConfigurationError("Candidate quality list is required")
    candidates = tuple(candidates)
    if not candidates:
        raise ConfigurationError("Candidate quality list is empty")

    for q in candidates:
        if not 0 < q <= 1:
            raise ConfigurationError(f"Quality {q} is outside (0, 1]")
    for higher, lower in zip(candidates, candidates[1:]):
        if lower >= higher:
            raise ConfigurationError(
                f"Candidate qualities must be strictly descending: {candidates}"
            )
    return candidates


def run_search(
    qualities: Sequence[float],
    attempt: Callable[[float], bytes],
    max_size_bytes: Optional[int] = None,
    progress: Optional[ProgressCallback] = None,
    phase: str = "encode",
    stage: str = "encode"
) -> SearchOutcome:
    """
    Try qualities in order until one produces output within budget.

    Args:
        qualities: Descending qualities to try
        attempt: Produces the output bytes for one quality
        max_size_bytes: Budget; None means use the first quality, no search
        progress: Optional sink, called once per attempt before deciding
        phase: Phase name put on progress events
        stage: Stage name for CollaboratorFailure when attempt() raises

    Returns:
        SearchOutcome of the accepted (or last) candidate

    Raises:
        CollaboratorFailure: attempt() failed; no partial outcome
    """
    if not qualities:
        raise ConfigurationError("No qualities to search")
    if max_size_bytes is None:
        qualities = qualities[:1]

    attempts = []
    result = None
    for quality in qualities:
        try:
            data = attempt(quality)
        except ReducerError:
            raise
        except Exception as e:
            raise CollaboratorFailure(stage, f"{e} (quality {quality})") from e

        result = CandidateResult(quality=quality, data=bytes(data))
        attempts.append((quality, result.size_bytes))
        report(progress, ProgressEvent(
            phase=phase, quality=quality, size_bytes=result.size_bytes
        ))
        logger.debug(f"{phase}: q={quality:.2f} -> {result.size_bytes:,} bytes")

        if max_size_bytes is None or result.size_bytes <= max_size_bytes:
            return SearchOutcome(
                final_bytes=result.data,
                final_quality=quality,
                achieved_size_bytes=result.size_bytes,
                target_met=True,
                attempts=attempts
            )

    logger.warning(
        f"Target {max_size_bytes:,} bytes not met; lowest quality "
        f"{result.quality:.2f} gave {result.size_bytes:,} bytes"
    )
    return SearchOutcome(
        final_bytes=result.data,
        final_quality=result.quality,
        achieved_size_bytes=result.size_bytes,
        target_met=False,
        attempts=attempts
    )


class QualitySearchPolicy:
    """Ordered candidate qualities plus the shared stop/fallback rules."""

    phase = "encode"

    def qualities(self) -> Sequence[float]:
        raise NotImplementedError

    def search(
        self,
        attempt: Callable[[float], bytes],
        max_size_bytes: Optional[int] = None,
        progress: Optional[ProgressCallback] = None,
        stage: str = "encode"
    ) -> SearchOutcome:
        return run_search(
            self.qualities(),
            attempt,
            max_size_bytes=max_size_bytes,
            progress=progress,
            phase=self.phase,
            stage=stage
        )


class StepDecaySearch(QualitySearchPolicy):
    """Linear decrement from start to floor."""

    phase = "encode"

    def __init__(
        self,
        start: float = START_QUALITY,
        step: float = QUALITY_STEP,
        floor: float = MIN_QUALITY
    ):
        self._qualities = step_decay_qualities(start, step, floor)

    def qualities(self) -> Sequence[float]:
        return self._qualities


class CandidateListSearch(QualitySearchPolicy):
    """Fixed list of descending qualities."""

    phase = "candidate"

    def __init__(self, candidates: Iterable[float]):
        self._qualities = validate_candidates(candidates)

    def qualities(self) -> Sequence[float]:
        return self._qualities
