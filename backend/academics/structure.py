"""Academic stage structure resolution.

Turns a course (and optionally one of its branches) into the year/semester
layout students move through. Out-of-range configuration is clamped, never
rejected, so a structure is always produced.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Iterable, List, Optional

from .domain_structure import MAX_YEARS, MAX_SEMESTERS_PER_YEAR, DEFAULT_SEMESTERS_PER_YEAR

__all__ = [
    'StageStructure', 'YearStage', 'SemesterStage',
    'build_stage_structure', 'clamp_years', 'clamp_semesters', 'to_int',
]


@dataclass(frozen=True)
class SemesterStage:
    semester_number: int
    label: str


@dataclass(frozen=True)
class YearStage:
    year_number: int
    label: str
    semesters: List[SemesterStage] = field(default_factory=list)


@dataclass(frozen=True)
class StageStructure:
    total_years: int
    semesters_per_year: int
    years: List[YearStage] = field(default_factory=list)

    def semesters_in_year(self, year: int) -> int:
        for stage in self.years:
            if stage.year_number == year:
                return len(stage.semesters)
        return 0

    def contains(self, year: int, semester: int) -> bool:
        return 1 <= semester <= self.semesters_in_year(year)

    def as_dict(self) -> dict:
        """camelCase representation used by API payloads."""
        raw = asdict(self)
        return {
            'totalYears': raw['total_years'],
            'semestersPerYear': raw['semesters_per_year'],
            'years': [
                {
                    'yearNumber': y['year_number'],
                    'label': y['label'],
                    'semesters': [
                        {'semesterNumber': s['semester_number'], 'label': s['label']}
                        for s in y['semesters']
                    ],
                }
                for y in raw['years']
            ],
        }


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return default
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return default


def clamp_years(value: Any) -> int:
    years = to_int(value, 0)
    return min(max(years, 0), MAX_YEARS)


def clamp_semesters(value: Any) -> int:
    sems = to_int(value, DEFAULT_SEMESTERS_PER_YEAR)
    return min(max(sems, 1), MAX_SEMESTERS_PER_YEAR)


def _read(obj: Any, name: str):
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _semester_overrides(config: Optional[Iterable[Any]]) -> dict:
    overrides = {}
    for entry in config or []:
        year = to_int(_read(entry, 'year'))
        semesters = _read(entry, 'semesters')
        if year is None or to_int(semesters) is None:
            continue
        # first entry for a year wins
        overrides.setdefault(year, clamp_semesters(semesters))
    return overrides


def build_stage_structure(course: Any, branch: Any = None) -> StageStructure:
    """Expand the effective configuration into a StageStructure.

    Branch values override course values field by field; a branch that leaves
    a field NULL inherits the course's value.
    """
    total_years = _read(branch, 'total_years')
    if total_years is None:
        total_years = _read(course, 'total_years')
    semesters_per_year = _read(branch, 'semesters_per_year')
    if semesters_per_year is None:
        semesters_per_year = _read(course, 'semesters_per_year')
    config = _read(branch, 'year_semester_config')
    if not config:
        config = _read(course, 'year_semester_config')

    years_count = clamp_years(total_years)
    per_year = clamp_semesters(semesters_per_year)
    overrides = _semester_overrides(config)

    years = []
    for year_number in range(1, years_count + 1):
        count = overrides.get(year_number, per_year)
        years.append(YearStage(
            year_number=year_number,
            label=f"Year {year_number}",
            semesters=[
                SemesterStage(semester_number=n, label=f"Semester {n}")
                for n in range(1, count + 1)
            ],
        ))
    return StageStructure(total_years=years_count, semesters_per_year=per_year, years=years)
