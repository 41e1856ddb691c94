from enum import Enum


class UserRole(str, Enum):
    platform_admin = "platform_admin"
    school_admin = "school_admin"
    school_staff = "school_staff"
    parent = "parent"


SCHOOL_READ_ROLES = [UserRole.school_admin, UserRole.school_staff]
SCHOOL_WRITE_ROLES = [UserRole.school_admin]
