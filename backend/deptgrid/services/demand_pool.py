from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from deptgrid.schemas.catalog import BATCHES, Subject


@dataclass(eq=False)
class DemandUnit:
    """One outstanding lecture, or one lab block for one batch.

    Units compare by identity: two lectures of the same subject are still two
    distinct requirements.
    """

    subject: Subject
    year: str
    batch: str | None = None

    @property
    def is_lab(self) -> bool:
        return self.batch is not None

    @property
    def faculty(self) -> str:
        return self.subject.faculty

    @property
    def display_name(self) -> str:
        return self.subject.lab_display_name if self.is_lab else self.subject.name


class DemandPool:
    """Insertion-ordered collection with O(1) removal by reference."""

    def __init__(self, units: Iterable[DemandUnit] = ()) -> None:
        self._units: dict[DemandUnit, None] = dict.fromkeys(units)
        self.emitted = len(self._units)

    def __len__(self) -> int:
        return len(self._units)

    def __bool__(self) -> bool:
        return bool(self._units)

    def __iter__(self) -> Iterator[DemandUnit]:
        # snapshot so callers may consume while iterating
        return iter(list(self._units))

    def __contains__(self, unit: object) -> bool:
        return unit in self._units

    def consume(self, unit: DemandUnit) -> None:
        del self._units[unit]

    def ordered(self, key: Callable[[DemandUnit], float] | None = None) -> list[DemandUnit]:
        units = list(self._units)
        if key is None:
            return units
        # stable: ties keep pool order
        return sorted(units, key=key)

    def find(self, predicate: Callable[[DemandUnit], bool]) -> DemandUnit | None:
        for unit in self._units:
            if predicate(unit):
                return unit
        return None


def build_lecture_pool(subjects: Iterable[Subject]) -> DemandPool:
    return DemandPool(
        DemandUnit(subject=subject, year=subject.year)
        for subject in subjects
        for _ in range(subject.theory_hours)
    )


def build_lab_pool(subjects: Iterable[Subject]) -> DemandPool:
    return DemandPool(
        DemandUnit(subject=subject, year=subject.year, batch=batch)
        for subject in subjects
        for _ in range(subject.lab_blocks)
        for batch in BATCHES
    )
