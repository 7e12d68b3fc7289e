from dataclasses import dataclass

from class_checker.models import AvailabilityStatus, TrackedSection


@dataclass(frozen=True)
class Transition:
    section: TrackedSection
    was_open: bool
    now_open: bool

    @property
    def opened(self) -> bool:
        return self.now_open and not self.was_open


def detect_transition(section: TrackedSection, observed: AvailabilityStatus) -> Transition | None:
    """
    Compare a freshly parsed status with the stored one.

    Returns None when nothing changed. The stored status is the only memory
    across passes, so a transition is reported again on the next pass if the
    new status could not be saved.
    """
    if observed.open == section.status:
        return None
    return Transition(section=section, was_open=section.status, now_open=observed.open)
