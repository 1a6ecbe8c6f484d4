"""
Best Shot Backend — Ballot State Machine
==========================================

What:  The selection rules of the vote flow, independent of HTTP and storage.
Who:   Used by VoteService for toggle previews and submission validation, and
       by the presenters to decide which grid cards are selectable.

States:
    NOT_STARTED ──toggle──▶ SELECTING (1-9) ──toggle──▶ READY (10)
         ▲                      │    ▲                    │
         └──────toggle──────────┘    └──────toggle────────┘
                                                           │ begin_submit
                                                           ▼
                              READY ◀──abort_submit── SUBMITTING ──complete──▶ COMPLETED

    COMPLETED is terminal: a participant loaded as completed gets a
    read-only ballot and can never toggle again.
"""

from enum import Enum
from typing import Iterable, List, Tuple

from bestshot.exceptions import BallotStateError, ValidationError

# Every participant picks exactly this many photos
BALLOT_SIZE = 10


class BallotState(str, Enum):
    NOT_STARTED = "not_started"
    SELECTING = "selecting"
    READY = "ready"
    SUBMITTING = "submitting"
    COMPLETED = "completed"


class Ballot:
    """
    An ordered set of selected photo ids with a capacity of BALLOT_SIZE.

    Selection order is kept (first picked comes first) so the client sees its
    picks in the order it made them.
    """

    def __init__(
        self,
        selected: Iterable[int] = (),
        capacity: int = BALLOT_SIZE,
        completed: bool = False,
    ):
        ids = list(selected)
        if len(set(ids)) != len(ids):
            raise ValidationError(
                message="A photo can only be selected once",
                field="selected_ids",
            )
        if len(ids) > capacity:
            raise ValidationError(
                message=f"At most {capacity} photos can be selected",
                field="selected_ids",
                context={"count": len(ids)},
            )
        self.capacity = capacity
        self._selected: List[int] = ids
        self._submitting = False
        self._completed = completed

    @classmethod
    def completed_with(cls, selected: Iterable[int]) -> "Ballot":
        """Read-only ballot for a participant who already submitted."""
        return cls(selected, completed=True)

    # ── Read-only views ───────────────────────────────────────────────────

    @property
    def selected_ids(self) -> Tuple[int, ...]:
        return tuple(self._selected)

    @property
    def count(self) -> int:
        return len(self._selected)

    @property
    def is_full(self) -> bool:
        return self.count >= self.capacity

    @property
    def state(self) -> BallotState:
        if self._completed:
            return BallotState.COMPLETED
        if self._submitting:
            return BallotState.SUBMITTING
        if self.count == 0:
            return BallotState.NOT_STARTED
        if self.count == self.capacity:
            return BallotState.READY
        return BallotState.SELECTING

    @property
    def can_submit(self) -> bool:
        return self.state is BallotState.READY

    def is_selected(self, photo_id: int) -> bool:
        return photo_id in self._selected

    def can_add(self, photo_id: int) -> bool:
        """Whether toggling this photo would add it (not full, not busy)."""
        return (
            self.state not in (BallotState.SUBMITTING, BallotState.COMPLETED)
            and not self.is_selected(photo_id)
            and not self.is_full
        )

    # ── Transitions ───────────────────────────────────────────────────────

    def toggle(self, photo_id: int) -> bool:
        """
        Add or remove a photo. Returns True when the selection changed.

        - Selected photo: always removed, even when the ballot is full
        - Unselected photo: added only below capacity, otherwise a no-op
        - While a submission is in flight: no-op
        """
        if self._completed:
            raise BallotStateError(BallotState.COMPLETED.value, "change the selection")
        if self._submitting:
            return False
        if photo_id in self._selected:
            self._selected.remove(photo_id)
            return True
        if self.is_full:
            return False
        self._selected.append(photo_id)
        return True

    def begin_submit(self) -> Tuple[int, ...]:
        """Freeze the selection for submission and return it."""
        if not self.can_submit:
            raise BallotStateError(self.state.value, "submit")
        self._submitting = True
        return self.selected_ids

    def abort_submit(self) -> None:
        """Submission failed: unfreeze so the user can retry."""
        if self.state is not BallotState.SUBMITTING:
            raise BallotStateError(self.state.value, "abort a submission")
        self._submitting = False

    def complete(self) -> None:
        if self.state is not BallotState.SUBMITTING:
            raise BallotStateError(self.state.value, "complete")
        self._submitting = False
        self._completed = True

    def __repr__(self) -> str:
        return f"<Ballot(state={self.state.value}, selected={self._selected})>"
