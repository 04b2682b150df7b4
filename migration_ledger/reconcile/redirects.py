"""
Will-be redirects between applications.

A will-be value points from a superseded application to its replacement. It
only moves usage attribution; it never implies ownership. Chains (A -> B -> C)
and cycles (A -> B -> A) are data-quality conditions: cycle members get no
redirect at all, chains are resolved according to a RedirectPolicy.
"""

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel

from migration_ledger.core.models import CombinedRecord, MigrationRecord, is_absent
from migration_ledger.observability.logger import get_logger

logger = get_logger(__name__)


class RedirectPolicy(str, Enum):
    DIRECT = "direct"  # one hop; chains are reported
    FOLLOW_CHAIN = "follow_chain"  # resolve to the last application of the chain


class RedirectIssue(BaseModel):
    """
    A redirect that needs data cleanup.

    Attributes:
        issue: "cycle", "chain" or "conflict"
        applications: Applications involved, in chain order where applicable
    """

    issue: str
    applications: tuple[str, ...]

    @property
    def message(self) -> str:
        if self.issue == "cycle":
            return f"Will-be cycle: {' -> '.join(self.applications + self.applications[:1])}"
        if self.issue == "chain":
            return f"Multi-hop will-be chain: {' -> '.join(self.applications)}"
        return f"Conflicting will-be targets for {self.applications[0]}: {', '.join(self.applications[1:])}"


class RedirectMap:
    """
    Application -> will-be target, with cycle and chain detection.

    The first will-be value seen for an application wins; differing later
    values are reported as conflicts.
    """

    def __init__(self, edges: dict[str, str] | None = None, conflicts: dict[str, list[str]] | None = None):
        self.edges = dict(edges or {})
        self.issues: list[RedirectIssue] = []
        self.cycle_members: set[str] = set()
        for app, targets in sorted((conflicts or {}).items()):
            self.issues.append(RedirectIssue(issue="conflict", applications=(app, *targets)))
        self._detect()

    @classmethod
    def from_records(cls, records: Iterable[CombinedRecord | MigrationRecord]) -> "RedirectMap":
        edges: dict[str, str] = {}
        conflicts: dict[str, list[str]] = {}
        for record in records:
            if is_absent(record.will_be) or is_absent(record.application_name):
                continue
            source = record.application_name.strip()
            target = record.will_be.strip()
            current = edges.get(source)
            if current is None:
                edges[source] = target
            elif current != target:
                seen = conflicts.setdefault(source, [current])
                if target not in seen:
                    seen.append(target)
        return cls(edges, conflicts)

    def _detect(self) -> None:
        for start in sorted(self.edges):
            if start in self.cycle_members:
                continue
            path = [start]
            position = {start: 0}
            current = start
            while current in self.edges:
                nxt = self.edges[current]
                if nxt in position:
                    cycle = path[position[nxt]:]
                    if not self.cycle_members.intersection(cycle):
                        self.issues.append(RedirectIssue(issue="cycle", applications=tuple(cycle)))
                        logger.warning(self.issues[-1].message)
                    self.cycle_members.update(cycle)
                    break
                if nxt in self.cycle_members:
                    break
                position[nxt] = len(path)
                path.append(nxt)
                current = nxt

        for source, target in sorted(self.edges.items()):
            if source in self.cycle_members:
                continue
            if target in self.edges and target not in self.cycle_members:
                chain = [source, target]
                while chain[-1] in self.edges and chain[-1] not in self.cycle_members:
                    nxt = self.edges[chain[-1]]
                    if nxt in chain:
                        break
                    chain.append(nxt)
                self.issues.append(RedirectIssue(issue="chain", applications=tuple(chain)))

    def resolve(self, application: str, policy: RedirectPolicy = RedirectPolicy.DIRECT) -> str | None:
        """
        Target application for a redirected application.

        Returns:
            None when the application is not redirected or is part of a cycle
        """
        if application in self.cycle_members:
            return None
        target = self.edges.get(application)
        if target is None or policy is RedirectPolicy.DIRECT:
            return target
        seen = {application}
        while target in self.edges and target not in self.cycle_members and target not in seen:
            seen.add(target)
            target = self.edges[target]
        return target

    def is_redirected(self, application: str) -> bool:
        return self.resolve(application) is not None

    def __len__(self) -> int:
        return len(self.edges)
