from sqlalchemy import create_engine, Column, Integer, String, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime

from config import DATABASE_URL

Base = declarative_base()


class DailyTotalRecord(Base):
    __tablename__ = "daily_totals"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_daily_totals_user_date"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True)
    date = Column(String(10), index=True)   # YYYY-MM-DD
    calories = Column(Integer)
    protein = Column(Integer)
    carbs = Column(Integer)
    fat = Column(Integer)
    fiber = Column(Integer)
    meals = Column(Text)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def make_engine(database_url: str = DATABASE_URL):
    return create_engine(database_url)


def make_session_factory(engine):
    """Creates the daily_totals table if needed and returns a session factory."""
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autoflush=False, bind=engine)
