from sqlalchemy import JSON, Column, String

from .database import Base


class Report(Base):
    """One shift report per date. Nested sections are stored as-is."""

    __tablename__ = "reports"

    date = Column(String, primary_key=True)  # header.date

    header = Column(JSON, nullable=False)
    morning = Column(JSON, nullable=False, default=list)
    afternoon = Column(JSON, nullable=False, default=list)
    dashboard_data = Column(JSON, nullable=True)

    # ISO-8601 strings, server-assigned
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)

    @property
    def to_document(self):
        return {
            "header": self.header,
            "morning": self.morning or [],
            "afternoon": self.afternoon or [],
            "dashboardData": self.dashboard_data,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
