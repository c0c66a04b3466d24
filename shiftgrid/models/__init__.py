from sqlalchemy.orm import declarative_base

Base = declarative_base()

from .assignment import Assignment, Shift  # noqa: E402,F401
from .constraint import Constraint  # noqa: E402,F401
from .notification import Notification  # noqa: E402,F401
from .organization import Organization  # noqa: E402,F401
from .plan import Plan, Slot  # noqa: E402,F401
from .user import User  # noqa: E402,F401
from .workplace import Workplace  # noqa: E402,F401
