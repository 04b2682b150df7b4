"""
Status vocabularies and their percentages.

Package and test statuses map to percentages (unknown text counts as 0).
Migration-cluster readiness uses nine ordered stages; unknown readiness has
no value at all and is left out of averages.
"""

from enum import Enum

from migration_ledger.observability.logger import get_logger

logger = get_logger(__name__)

PACKAGE_STATUS_SCORES: dict[str, float] = {
    "ready": 100.0,
    "ready for testing": 100.0,
    "completed": 100.0,
    "passed": 100.0,
    "in progress": 50.0,
    "not started": 0.0,
    "": 0.0,
    "n/a": 0.0,
}

TEST_STATUS_SCORES: dict[str, float] = {
    "ready": 100.0,
    "completed": 100.0,
    "passed": 100.0,
    "pat ok": 100.0,
    "pat on hold": 75.0,
    "pat planned": 60.0,
    "gat ok": 50.0,
    "in progress": 30.0,
    "not started": 0.0,
    "": 0.0,
    "n/a": 0.0,
}


def _fold(status: str | None) -> str:
    return " ".join((status or "").strip().lower().split())


def package_percentage(status: str | None) -> float:
    key = _fold(status)
    if key not in PACKAGE_STATUS_SCORES:
        logger.debug(f"Unknown package status '{status}' scored as 0")
        return 0.0
    return PACKAGE_STATUS_SCORES[key]


def test_percentage(status: str | None) -> float:
    key = _fold(status)
    if key not in TEST_STATUS_SCORES:
        logger.debug(f"Unknown test status '{status}' scored as 0")
        return 0.0
    return TEST_STATUS_SCORES[key]


class ReadinessStage(str, Enum):
    """Migration-cluster readiness stages in execution order."""

    ORDERLIST_TO_DEP = "orderlist to dep"
    ORDERLIST_CONFIRMED = "orderlist confirmed"
    WAITING_FOR_APPS = "waiting for apps"
    ON_HOLD = "on hold"
    READY_TO_START = "ready to start"
    PLANNED = "planned"
    EXECUTED = "executed"
    AFTERCARE_OK = "aftercare ok"
    DECHARGE = "decharge"

    @property
    def percentage(self) -> float:
        return READINESS_PERCENTAGES[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, status: str | None) -> "ReadinessStage | None":
        key = _fold(status)
        for stage in cls:
            if stage.value == key:
                return stage
        return None


READINESS_PERCENTAGES: dict[ReadinessStage, float] = {
    ReadinessStage.ORDERLIST_TO_DEP: 10.0,
    ReadinessStage.ORDERLIST_CONFIRMED: 20.0,
    ReadinessStage.WAITING_FOR_APPS: 25.0,
    ReadinessStage.ON_HOLD: 30.0,
    ReadinessStage.READY_TO_START: 50.0,
    ReadinessStage.PLANNED: 60.0,
    ReadinessStage.EXECUTED: 90.0,
    ReadinessStage.AFTERCARE_OK: 98.0,
    ReadinessStage.DECHARGE: 100.0,
}

# Half-open [low, high) bands; the last band is closed at 100
READINESS_BANDS: tuple[tuple[float, float, ReadinessStage], ...] = (
    (0.0, 15.0, ReadinessStage.ORDERLIST_TO_DEP),
    (15.0, 22.5, ReadinessStage.ORDERLIST_CONFIRMED),
    (22.5, 27.5, ReadinessStage.WAITING_FOR_APPS),
    (27.5, 40.0, ReadinessStage.ON_HOLD),
    (40.0, 55.0, ReadinessStage.READY_TO_START),
    (55.0, 75.0, ReadinessStage.PLANNED),
    (75.0, 95.0, ReadinessStage.EXECUTED),
    (95.0, 99.0, ReadinessStage.AFTERCARE_OK),
    (99.0, 100.0, ReadinessStage.DECHARGE),
)


def readiness_percentage(status: str | None) -> float | None:
    """Percentage of a readiness status, None when the status is unknown or absent."""
    stage = ReadinessStage.parse(status)
    return stage.percentage if stage is not None else None


def readiness_stage_for(percentage: float | None) -> ReadinessStage | None:
    """Stage whose band contains the percentage; None outside [0, 100]."""
    if percentage is None or percentage < 0.0 or percentage > 100.0:
        return None
    for low, high, stage in READINESS_BANDS:
        if low <= percentage < high:
            return stage
    return ReadinessStage.DECHARGE


def application_status_label(
    package_progress: float,
    test_progress: float,
    will_be: str | None = None,
    out_of_scope: bool = False,
) -> str:
    """Status shown for one application."""
    if will_be:
        return "Sunset"
    if out_of_scope:
        return "Out of scope"
    progress = (package_progress + test_progress) / 2
    if progress <= 0:
        return "Not Started"
    if progress >= 100:
        return "Migration ready"
    return "In Progress"


def readiness_text(progress: float) -> str:
    """Wording for a combined progress percentage."""
    if progress <= 0:
        return "Not started"
    if progress <= 20:
        return "Started"
    if progress <= 80:
        return "In progress"
    if progress < 100:
        return "Finishing"
    return "Ready to Migrate"
