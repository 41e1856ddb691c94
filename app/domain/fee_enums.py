from enum import Enum


class FeeCategoryType(str, Enum):
    tuition = "tuition"
    additional = "additional"


class ProgramType(str, Enum):
    all = "all"
    kindergarten = "kindergarten"
    primary = "primary"
    secondary = "secondary"
    high_school = "high-school"
    university = "university"


class FeeStructureStatus(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


FEE_STRUCTURE_TRANSITIONS: dict[FeeStructureStatus, set[FeeStructureStatus]] = {
    FeeStructureStatus.draft: {FeeStructureStatus.published, FeeStructureStatus.archived},
    FeeStructureStatus.published: {FeeStructureStatus.archived},
    FeeStructureStatus.archived: set(),
}


def can_transition_structure(current: FeeStructureStatus, target: FeeStructureStatus) -> bool:
    return target in FEE_STRUCTURE_TRANSITIONS[current]
