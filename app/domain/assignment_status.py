from enum import Enum


class AssignmentStatus(str, Enum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


ASSIGNMENT_TRANSITIONS: dict[AssignmentStatus, set[AssignmentStatus]] = {
    AssignmentStatus.active: {AssignmentStatus.completed, AssignmentStatus.cancelled},
    AssignmentStatus.completed: set(),
    AssignmentStatus.cancelled: set(),
}


def can_transition_assignment(current: AssignmentStatus, target: AssignmentStatus) -> bool:
    return target in ASSIGNMENT_TRANSITIONS[current]
