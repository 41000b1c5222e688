from .db import db
from .append_only import AppendOnlyViolation
from .company import Company
from .user import User, UserModuleAccess
from .session import Session
from .audit_log import AuditLog
from .customer import Customer
from .project import Project
from .room import Room
from .editor import Editor
from .reservation import Reservation
from .reservation_log import ReservationLog
from .chalan import Chalan, ChalanItem
from .chalan_revision import ChalanRevision
from .chalan_sequence import ChalanSequence
