from __future__ import annotations

from dataclasses import dataclass, field

from demigod.domain.enums import ArtifactKind, OutcomeStatus, SyncStage
from demigod.domain.errors import DomainError


@dataclass(slots=True)
class SyncOutcome:
    kind: ArtifactKind
    status: OutcomeStatus
    stage: SyncStage | None = None
    fetched: bool = False
    error: DomainError | None = None


@dataclass(slots=True)
class SyncReport:
    outcomes: list[SyncOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(o.status is OutcomeStatus.SUCCEEDED for o in self.outcomes)

    @property
    def first_error(self) -> DomainError | None:
        for outcome in self.outcomes:
            if outcome.error is not None:
                return outcome.error
        return None

    def outcome_for(self, kind: ArtifactKind) -> SyncOutcome | None:
        return next((o for o in self.outcomes if o.kind is kind), None)
