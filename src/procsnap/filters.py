"""Process membership filters.

A filter decides whether a (descriptor, parse error) pair belongs in a scan
result. Descriptors that failed to parse are excluded under every scope.
"""

import os
from dataclasses import dataclass, field
from enum import Enum

from procsnap.models import ProcessDescriptor


class FilterKind(Enum):
    """Filter scopes, by name and description."""

    ALL = ("all", "all processes")
    GLOBAL = ("global", "processes inside any user slice")
    SYSTEM = ("system", "processes inside system slice")
    USER = ("user", "calling user processes")

    def __init__(self, scope: str, description: str) -> None:
        self.scope = scope
        self.description = description


@dataclass(slots=True, frozen=True)
class Filter:
    """A filter scope bound to the uid that USER compares against."""

    kind: FilterKind = FilterKind.USER
    uid: int = field(default_factory=os.getuid)

    def __call__(
        self,
        descriptor: ProcessDescriptor | None,
        error: Exception | None = None,
    ) -> bool:
        if error is not None or descriptor is None:
            return False

        match self.kind:
            case FilterKind.ALL:
                return True
            case FilterKind.GLOBAL:
                return descriptor.in_user_slice
            case FilterKind.SYSTEM:
                return descriptor.in_system_slice
            case FilterKind.USER:
                return descriptor.uid == self.uid and descriptor.in_user_slice
        raise AssertionError(f"unhandled filter kind: {self.kind}")

    @property
    def scope(self) -> str:
        return self.kind.scope

    def __str__(self) -> str:
        return self.kind.description


_BY_SCOPE = {kind.scope: kind for kind in FilterKind}


def get_filter(scope: str, uid: int | None = None) -> Filter:
    """Return the filter for a scope name.

    Matching is case-insensitive. Unknown names fall back to the USER
    scope rather than raising, so a typo still yields the narrowest view.

    Args:
        scope: One of ``all``, ``global``, ``system`` or ``user``.
        uid: Uid for the USER scope; defaults to the calling process's uid.
    """
    kind = _BY_SCOPE.get(scope.strip().lower(), FilterKind.USER)
    return Filter(kind=kind, uid=os.getuid() if uid is None else uid)
