"""Access scope for student-facing reads and writes.

A `UserScope` is an immutable value describing which colleges, courses and
branches a caller may see. It is attached to the request by the auth layer
(`request.user_scope`) or derived from the user's `StaffScope` row, and then
passed explicitly into every function that touches student rows.

Every restriction fails closed: a restricted scope that names no colleges, or
no courses/branches while the matching `all_*` flag is off, matches nothing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from django.db.models import Q

logger = logging.getLogger(__name__)

__all__ = [
    'UserScope', 'MATCH_NOTHING_SQL',
    'build_scope_conditions', 'scope_q', 'scope_predicate',
    'resolve_scope_names', 'scope_for_user', 'scope_from_request', 'describe_scope',
]

MATCH_NOTHING_SQL = '1 = 0'


def _tuple(values: Optional[Iterable[Any]]) -> tuple:
    if not values:
        return ()
    if isinstance(values, (str, int)):
        values = [values]
    out = []
    for v in values:
        if v is None or v == '':
            continue
        if v not in out:
            out.append(v)
    return tuple(out)


@dataclass(frozen=True)
class UserScope:
    unrestricted: bool = False
    college_ids: tuple = ()
    college_names: tuple = ()
    all_courses: bool = False
    course_ids: tuple = ()
    course_names: tuple = ()
    all_branches: bool = False
    branch_ids: tuple = ()
    branch_names: tuple = ()

    @classmethod
    def full_access(cls) -> 'UserScope':
        return cls(unrestricted=True, all_courses=True, all_branches=True)

    @classmethod
    def from_value(cls, value: Any) -> 'UserScope':
        """Accept a UserScope or a mapping with camelCase or snake_case keys."""
        if isinstance(value, UserScope):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(f"Unsupported scope value: {type(value).__name__}")

        def pick(*keys, default=None):
            for key in keys:
                if key in value:
                    return value[key]
            return default

        return cls(
            unrestricted=bool(pick('unrestricted', default=False)),
            college_ids=_tuple(pick('collegeIds', 'college_ids')),
            college_names=_tuple(pick('collegeNames', 'college_names')),
            all_courses=bool(pick('allCourses', 'all_courses', default=False)),
            course_ids=_tuple(pick('courseIds', 'course_ids')),
            course_names=_tuple(pick('courseNames', 'course_names')),
            all_branches=bool(pick('allBranches', 'all_branches', default=False)),
            branch_ids=_tuple(pick('branchIds', 'branch_ids')),
            branch_names=_tuple(pick('branchNames', 'branch_names')),
        )

    def allows_college(self, name: Optional[str]) -> bool:
        if self.unrestricted:
            return True
        return name is not None and name in self.college_names

    def allows_course(self, name: Optional[str]) -> bool:
        if self.unrestricted or self.all_courses:
            return True
        return name is not None and name in self.course_names

    def allows_branch(self, name: Optional[str]) -> bool:
        if self.unrestricted or self.all_branches:
            return True
        return name is not None and name in self.branch_names


# (scope attribute prefix, student column, hierarchy table, all_* flag attribute)
_LEVELS = (
    ('college', 'college', 'colleges', None),
    ('course', 'course', 'courses', 'all_courses'),
    ('branch', 'branch', 'course_branches', 'all_branches'),
)


def _level_is_open(scope: UserScope, flag: Optional[str]) -> bool:
    return bool(flag and getattr(scope, flag))


def build_scope_conditions(scope: UserScope, alias: str = 's') -> Tuple[List[str], List[Any]]:
    """Return raw-SQL conditions (to be ANDed) and their parameters.

    Conditions compare the student table's denormalized name columns with the
    scope's names, or with names looked up from the hierarchy tables by id.
    """
    if scope.unrestricted:
        return [], []

    conditions: List[str] = []
    params: List[Any] = []
    for level, column, table, flag in _LEVELS:
        if _level_is_open(scope, flag):
            continue
        names = getattr(scope, f'{level}_names')
        ids = getattr(scope, f'{level}_ids')
        qualified = f'{alias}.{column}' if alias else column
        parts = []
        if names:
            parts.append(f"{qualified} IN ({', '.join(['%s'] * len(names))})")
            params.extend(names)
        if ids:
            parts.append(
                f"{qualified} IN (SELECT name FROM {table} WHERE id IN ({', '.join(['%s'] * len(ids))}))"
            )
            params.extend(ids)
        if not parts:
            conditions.append(MATCH_NOTHING_SQL)
        elif len(parts) == 1:
            conditions.append(parts[0])
        else:
            conditions.append(f"({' OR '.join(parts)})")
    return conditions, params


def scope_q(scope: UserScope, prefix: str = '') -> Q:
    """ORM equivalent of `build_scope_conditions` for Student querysets."""
    from .domain_structure import College, Course, Branch

    if scope.unrestricted:
        return Q()

    lookups = {'college': College, 'course': Course, 'branch': Branch}
    combined = Q()
    for level, column, _table, flag in _LEVELS:
        if _level_is_open(scope, flag):
            continue
        names = getattr(scope, f'{level}_names')
        ids = getattr(scope, f'{level}_ids')
        level_q = Q(**{f'{prefix}pk__in': []})
        if names or ids:
            level_q = Q()
            if names:
                level_q |= Q(**{f'{prefix}{column}__in': list(names)})
            if ids:
                model = lookups[level]
                level_q |= Q(**{f'{prefix}{column}__in': model.objects.filter(id__in=list(ids)).values('name')})
        combined &= level_q
    return combined


def resolve_scope_names(scope: UserScope) -> UserScope:
    """Return a copy whose name lists also contain the names behind its ids."""
    from .domain_structure import College, Course, Branch

    if scope.unrestricted:
        return scope
    updates = {}
    for level, model in (('college', College), ('course', Course), ('branch', Branch)):
        ids = getattr(scope, f'{level}_ids')
        if not ids:
            continue
        names = list(getattr(scope, f'{level}_names'))
        names.extend(model.objects.filter(id__in=list(ids)).values_list('name', flat=True))
        updates[f'{level}_names'] = _tuple(names)
    return replace(scope, **updates) if updates else scope


def scope_predicate(scope: UserScope) -> Callable[[Any], bool]:
    """In-memory filter over student mappings or objects."""
    if scope.unrestricted:
        return lambda _row: True
    if scope.college_ids or scope.course_ids or scope.branch_ids:
        scope = resolve_scope_names(scope)

    def _get(row, key):
        if isinstance(row, Mapping):
            return row.get(key)
        return getattr(row, key, None)

    def predicate(row) -> bool:
        return (
            scope.allows_college(_get(row, 'college'))
            and scope.allows_course(_get(row, 'course'))
            and scope.allows_branch(_get(row, 'branch'))
        )

    return predicate


def scope_for_user(user) -> UserScope:
    """Derive the scope for an authenticated user."""
    from .domain_scope import StaffScope

    if user is None or not getattr(user, 'is_authenticated', False):
        return UserScope()
    if user.is_superuser:
        return UserScope.full_access()
    assignment = StaffScope.objects.filter(user=user).first()
    if assignment is None:
        logger.warning('User %s has no staff scope; all student data hidden', user.pk)
        return UserScope()
    scope = UserScope(
        college_ids=_tuple(assignment.college_ids),
        all_courses=assignment.all_courses,
        course_ids=() if assignment.all_courses else _tuple(assignment.course_ids),
        all_branches=assignment.all_branches,
        branch_ids=() if assignment.all_branches else _tuple(assignment.branch_ids),
    )
    return resolve_scope_names(scope)


def scope_from_request(request) -> UserScope:
    attached = getattr(request, 'user_scope', None)
    if attached is not None:
        return UserScope.from_value(attached)
    scope = scope_for_user(getattr(request, 'user', None))
    request.user_scope = scope
    return scope


def describe_scope(scope: UserScope) -> str:
    if scope.unrestricted:
        return 'All data (Super Admin)'
    parts = []
    if scope.college_names or scope.college_ids:
        parts.append(f"Colleges: {', '.join(map(str, scope.college_names or scope.college_ids))}")
    if scope.all_courses:
        parts.append('Courses: all')
    elif scope.course_names or scope.course_ids:
        parts.append(f"Courses: {', '.join(map(str, scope.course_names or scope.course_ids))}")
    if scope.all_branches:
        parts.append('Branches: all')
    elif scope.branch_names or scope.branch_ids:
        parts.append(f"Branches: {', '.join(map(str, scope.branch_names or scope.branch_ids))}")
    return '; '.join(parts) if parts else 'No access'
