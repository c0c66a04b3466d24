SUPER_ADMIN = "SUPER_ADMIN"
ADMIN = "ADMIN"
ORG_MANAGER = "ORG_MANAGER"
AUDITOR = "AUDITOR"
WORKER = "WORKER"

USER_ROLES = (SUPER_ADMIN, ADMIN, ORG_MANAGER, AUDITOR, WORKER)
PLANNER_ROLES = frozenset({SUPER_ADMIN, ADMIN})
MATRIX_VIEWER_ROLES = frozenset({SUPER_ADMIN, ADMIN, AUDITOR})
ASSIGNABLE_ROLES = frozenset({WORKER, ORG_MANAGER})

SLOT_PLANNED = "PLANNED"
SLOT_CONFIRMED = "CONFIRMED"
SLOT_CANCELLED = "CANCELLED"
SLOT_REPLACED = "REPLACED"
SLOT_STATUSES = (SLOT_PLANNED, SLOT_CONFIRMED, SLOT_CANCELLED, SLOT_REPLACED)
ACTIVE_SLOT_STATUSES = (SLOT_PLANNED, SLOT_CONFIRMED)

PLAN_DRAFT = "DRAFT"
PLAN_PUBLISHED = "PUBLISHED"
PLAN_ARCHIVED = "ARCHIVED"
PLAN_STATUSES = (PLAN_DRAFT, PLAN_PUBLISHED, PLAN_ARCHIVED)

ASSIGNMENT_ACTIVE = "ACTIVE"
ASSIGNMENT_ARCHIVED = "ARCHIVED"
ASSIGNMENT_STATUSES = (ASSIGNMENT_ACTIVE, ASSIGNMENT_ARCHIVED)

SHIFT_KINDS = ("DEFAULT", "DAY_OFF", "OFFICE", "REMOTE")

NOTIFY_CREATED = "ASSIGNMENT_CREATED"
NOTIFY_UPDATED = "ASSIGNMENT_UPDATED"
NOTIFY_MOVED = "ASSIGNMENT_MOVED"
NOTIFY_CANCELLED = "ASSIGNMENT_CANCELLED"
NOTIFICATION_TYPES = (NOTIFY_CREATED, NOTIFY_UPDATED, NOTIFY_MOVED, NOTIFY_CANCELLED)

CONSTRAINT_AVAILABILITY = "AVAILABILITY"
CONSTRAINT_MAX_SLOTS_PER_WEEK = "MAX_SLOTS_PER_WEEK"
CONSTRAINT_ORG_BLACKLIST = "ORG_BLACKLIST"
