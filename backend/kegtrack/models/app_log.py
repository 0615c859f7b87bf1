from sqlalchemy import Column, Integer, String, Text, DateTime

from kegtrack.models.base import Base, utcnow


class AppLog(Base):
    __tablename__ = "app_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    level = Column(String(10), nullable=False)  # ERROR, WARNING, INFO
    message = Column(Text, nullable=False)
    component = Column(String(100), nullable=False)
    stack = Column(Text, nullable=True)
    user_email = Column(String(255), nullable=False, default="anonymous")
