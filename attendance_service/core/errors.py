"""Exception hierarchy for the eligibility engine.

Three families, handled differently by callers:

  EntryValidationError  bad input at data entry; rejected before it is stored.
  RepositoryError       I/O failure talking to the store; per-enrollment
                        writes are retried then recorded, everything else
                        propagates.
  state errors          lifecycle misuse. AlreadyClosedError is a safe no-op
                        retry; PeriodStillActiveError is a caller bug.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for every error raised by attendance-service."""


class EntryValidationError(EngineError, ValueError):
    pass


class NotFoundError(EngineError, LookupError):
    def __init__(self, kind: str, ident: object) -> None:
        super().__init__(f"{kind} not found: {ident}")
        self.kind = kind
        self.ident = ident


class RepositoryError(EngineError):
    """Transient failure reading from or writing to the store."""


class StateError(EngineError):
    pass


class AlreadyClosedError(StateError):
    """The target is already closed. Retrying is harmless."""

    def __init__(self, kind: str, ident: object) -> None:
        super().__init__(f"{kind} already closed: {ident}")
        self.kind = kind
        self.ident = ident


class PeriodStillActiveError(StateError):
    """A final result was requested while the owning period is still active."""

    def __init__(self, period_id: object) -> None:
        super().__init__(f"period is still active: {period_id}")
        self.period_id = period_id


class ClosureConflictError(StateError):
    """A guarded status transition lost to a concurrent writer."""

    def __init__(self, kind: str, ident: object, expected: str, actual: str) -> None:
        super().__init__(
            f"{kind} {ident}: expected status {expected!r}, found {actual!r}"
        )
        self.kind = kind
        self.ident = ident
        self.expected = expected
        self.actual = actual


class IncompleteSessionsError(StateError):
    """Fewer sessions were held than planned and the caller did not acknowledge it."""

    def __init__(self, class_id: object, sessions_held: int, planned: int) -> None:
        super().__init__(
            f"class {class_id}: only {sessions_held} of {planned} planned sessions "
            "were held; closing requires acknowledge_incomplete"
        )
        self.class_id = class_id
        self.sessions_held = sessions_held
        self.planned = planned
