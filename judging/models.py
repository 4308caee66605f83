# judging/models.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Float, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from judging.database import Base

class UserRole(str, enum.Enum):
    admin = "admin"
    judge = "judge"

class User(Base):
    __tablename__ = "users"
    # Scores keep a bare judge_id, so a deleted account's id must never be handed out again.
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(120), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, name="user_role"), default=UserRole.judge, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Participant(Base):
    __tablename__ = "participants"
    id = Column(Integer, primary_key=True, index=True)
    team_name = Column(String(200), nullable=False)
    project_title = Column(String(300), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    scores = relationship("Score", back_populates="participant", cascade="all, delete-orphan")


class Score(Base):
    __tablename__ = "scores"
    id = Column(Integer, primary_key=True, index=True)
    participant_id = Column(Integer, ForeignKey("participants.id"), nullable=False, index=True)
    # Plain column (no FK): scores outlive the judge account that submitted them.
    judge_id = Column(Integer, nullable=False, index=True)
    project_design = Column(Float, nullable=False)
    functionality = Column(Float, nullable=False)
    presentation = Column(Float, nullable=False)
    web_design = Column(Float, nullable=False)
    impact = Column(Float, nullable=False)
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    participant = relationship("Participant", back_populates="scores")


class AppSetting(Base):
    __tablename__ = "app_settings"
    key = Column(String(200), primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow)
