"""
Best Shot Backend — Photo Ranking
===================================

What:  Ranks catalog photos by vote count for the admin ranking view and the
       PDF export.

Tie-breaking:
    Python's sort is stable (also with reverse=True), so photos with equal
    counts keep their input order. Input order is the catalog order (photo id
    ascending). No secondary key is applied.
"""

from typing import List, Mapping, Protocol, Sequence, Tuple, TypeVar


class HasId(Protocol):
    id: int


P = TypeVar("P", bound=HasId)


def rank_photos(
    photos: Sequence[P],
    counts: Mapping[int, int],
    limit: int = 10,
) -> List[Tuple[P, int]]:
    """
    Return up to `limit` (photo, count) pairs, most votes first.

    Photos nobody voted for count as zero and still rank when there are fewer
    voted photos than `limit`.
    """
    scored = [(photo, counts.get(photo.id, 0)) for photo in photos]
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[:limit]
