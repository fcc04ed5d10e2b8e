# Import the declarative base
from app.db.base import Base

# Import all models for Alembic/SQLAlchemy discovery
# Note: These imports are required so that they register themselves on Base.metadata
from app.models.sheet import SheetRecord
from app.models.audit_log import AuditLog
from app.models.notification import Notification
