"""Punch normalization and IN/OUT pairing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID


class PunchDirection(str, Enum):
    """Normalized punch direction."""

    IN = "in"
    OUT = "out"
    BREAK_OUT = "break_out"
    BREAK_IN = "break_in"


# Device and import aliases; biometric terminals commonly report 0/1
DIRECTION_ALIASES: dict[str, PunchDirection] = {
    "in": PunchDirection.IN,
    "entry": PunchDirection.IN,
    "check-in": PunchDirection.IN,
    "check_in": PunchDirection.IN,
    "time-in": PunchDirection.IN,
    "time_in": PunchDirection.IN,
    "0": PunchDirection.IN,
    "out": PunchDirection.OUT,
    "exit": PunchDirection.OUT,
    "check-out": PunchDirection.OUT,
    "check_out": PunchDirection.OUT,
    "time-out": PunchDirection.OUT,
    "time_out": PunchDirection.OUT,
    "1": PunchDirection.OUT,
    "break_out": PunchDirection.BREAK_OUT,
    "break-out": PunchDirection.BREAK_OUT,
    "break_in": PunchDirection.BREAK_IN,
    "break-in": PunchDirection.BREAK_IN,
}


def normalize_direction(value: str | int | PunchDirection | None) -> PunchDirection | None:
    """Map a raw direction to PunchDirection, or None when unrecognized."""
    if value is None:
        return None
    if isinstance(value, PunchDirection):
        return value
    return DIRECTION_ALIASES.get(str(value).strip().lower())


@dataclass(frozen=True)
class PunchEvent:
    punched_at: datetime
    direction: PunchDirection
    punch_id: UUID | None = None
    is_valid: bool = True


@dataclass(frozen=True)
class PunchPair:
    start: datetime
    end: datetime

    @property
    def seconds(self) -> int:
        return max(int((self.end - self.start).total_seconds()), 0)


@dataclass
class PunchPairingResult:
    """Work and break intervals recovered from one day's punches."""

    work_pairs: list[PunchPair] = field(default_factory=list)
    break_pairs: list[PunchPair] = field(default_factory=list)
    unpaired_in: datetime | None = None
    orphan_outs: list[datetime] = field(default_factory=list)
    duplicates_removed: int = 0
    invalid_count: int = 0
    review_reasons: list[str] = field(default_factory=list)

    @property
    def needs_review(self) -> bool:
        return bool(self.review_reasons)

    @property
    def has_punches(self) -> bool:
        return bool(self.work_pairs) or self.unpaired_in is not None or bool(self.orphan_outs)

    @property
    def first_in(self) -> datetime | None:
        starts = [p.start for p in self.work_pairs]
        if self.unpaired_in is not None:
            starts.append(self.unpaired_in)
        return min(starts) if starts else None

    @property
    def last_out(self) -> datetime | None:
        return self.work_pairs[-1].end if self.work_pairs else None

    def add_review(self, reason: str) -> None:
        if reason not in self.review_reasons:
            self.review_reasons.append(reason)


class PunchPairProcessor:
    """Turns raw punches into IN/OUT work pairs and break pairs.

    Rules:
    - Invalid punches are dropped; the rest are sorted chronologically
    - Same-direction scans within the duplicate window collapse to the earliest
    - An IN while another IN is open is a duplicate (earliest kept)
    - An OUT with no open IN is an orphan and flags the day for review
    - A trailing IN is unpaired ("Missing time-out")
    """

    def __init__(self, duplicate_window_minutes: int = 3):
        self.duplicate_window = timedelta(minutes=duplicate_window_minutes)

    def process(self, events: list[PunchEvent]) -> PunchPairingResult:
        result = PunchPairingResult()

        valid = [e for e in events if e.is_valid]
        result.invalid_count = len(events) - len(valid)
        ordered = self._collapse_duplicates(sorted(valid, key=lambda e: e.punched_at), result)

        open_in: PunchEvent | None = None
        open_break: PunchEvent | None = None

        for event in ordered:
            if event.direction == PunchDirection.IN:
                if open_in is None:
                    open_in = event
                else:
                    result.duplicates_removed += 1
            elif event.direction == PunchDirection.OUT:
                if open_in is None:
                    result.orphan_outs.append(event.punched_at)
                    result.add_review("Time-out without matching time-in")
                else:
                    result.work_pairs.append(PunchPair(open_in.punched_at, event.punched_at))
                    open_in = None
            elif event.direction == PunchDirection.BREAK_OUT:
                if open_break is None:
                    open_break = event
                else:
                    result.duplicates_removed += 1
            else:
                if open_break is None:
                    result.add_review("Break-in without matching break-out")
                else:
                    result.break_pairs.append(PunchPair(open_break.punched_at, event.punched_at))
                    open_break = None

        if open_in is not None:
            result.unpaired_in = open_in.punched_at
            result.add_review("Missing time-out")
        if open_break is not None:
            result.add_review("Missing break-in")

        return result

    def _collapse_duplicates(
        self, events: list[PunchEvent], result: PunchPairingResult
    ) -> list[PunchEvent]:
        kept: list[PunchEvent] = []
        for event in events:
            if kept:
                last = kept[-1]
                if (
                    last.direction == event.direction
                    and event.punched_at - last.punched_at <= self.duplicate_window
                ):
                    result.duplicates_removed += 1
                    continue
            kept.append(event)
        return kept
