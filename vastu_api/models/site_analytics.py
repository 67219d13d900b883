"""
Vastu Samadhan Registration — Page analytics archive model.

The archiver moves events out of the hosted ``page_analytics`` node into
this table, one row per event, then prunes the hosted copy.
"""

import uuid

from sqlalchemy import Column, String, Integer, Text, DateTime, func, Index

from vastu_api.database import Base


class PageAnalyticsArchive(Base):
    """One archived analytics event, keyed by its hosted push id."""
    __tablename__ = "page_analytics_archive"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Firebase push id, unique
    source_key = Column(String(64), nullable=False, unique=True)

    session_id = Column(String(64), nullable=False)
    event_type = Column(String(20), nullable=False)  # page_view, bounce, exit, form_submit
    page_url = Column(Text, default="")
    referrer = Column(Text, nullable=True)
    user_agent = Column(Text, default="")
    time_on_page = Column(Integer, nullable=True)

    archived_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_analytics_archive_session", "session_id"),
        Index("ix_analytics_archive_type", "event_type"),
    )

    def __repr__(self):
        return f"<PageAnalyticsArchive {self.event_type} session={self.session_id}>"
