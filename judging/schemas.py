# judging/schemas.py

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Dict
from datetime import datetime

# Wire format is camelCase (teamName, participantId, finalScore, ...).
CAMEL = {"alias_generator": to_camel, "populate_by_name": True}
CAMEL_ORM = {**CAMEL, "from_attributes": True}

# ------------------------------------------------------------------
# AUTH
# ------------------------------------------------------------------

class Token(BaseModel):
    access_token: str
    token_type: str
    role: Optional[str] = None
    id: Optional[int] = None
    username: Optional[str] = None

    model_config = CAMEL


class UserLogin(BaseModel):
    username: str
    password: str


# ------------------------------------------------------------------
# USERS / JUDGES
# ------------------------------------------------------------------

class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=1)
    role: Optional[str] = "judge"  # admin | judge


class UserUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=120)
    password: Optional[str] = Field(default=None, min_length=1)
    role: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    username: str
    role: str

    model_config = {"from_attributes": True}

    @field_validator("role", mode="before")
    @classmethod
    def _role_value(cls, v):
        return getattr(v, "value", v)


# ------------------------------------------------------------------
# PARTICIPANTS
# ------------------------------------------------------------------

class ParticipantCreate(BaseModel):
    team_name: str = Field(min_length=1, max_length=200)
    project_title: str = Field(min_length=1, max_length=300)

    model_config = CAMEL


class ParticipantUpdate(BaseModel):
    team_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    project_title: Optional[str] = Field(default=None, min_length=1, max_length=300)

    model_config = CAMEL


class ParticipantOut(BaseModel):
    id: int
    team_name: str
    project_title: str
    created_at: Optional[datetime] = None

    model_config = CAMEL_ORM


# ------------------------------------------------------------------
# SCORES
# ------------------------------------------------------------------

class ScoreCreate(BaseModel):
    participant_id: int
    judge_id: int
    project_design: float
    functionality: float
    presentation: float
    web_design: float
    impact: float
    comments: Optional[str] = None

    model_config = CAMEL


class ScoreUpdate(BaseModel):
    participant_id: Optional[int] = None
    judge_id: Optional[int] = None
    project_design: Optional[float] = None
    functionality: Optional[float] = None
    presentation: Optional[float] = None
    web_design: Optional[float] = None
    impact: Optional[float] = None
    comments: Optional[str] = None

    model_config = CAMEL


class ScoreOut(BaseModel):
    id: int
    participant_id: int
    judge_id: int
    project_design: float
    functionality: float
    presentation: float
    web_design: float
    impact: float
    comments: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = CAMEL_ORM


# ------------------------------------------------------------------
# LEADERBOARD
# ------------------------------------------------------------------

class CriterionScoresOut(BaseModel):
    project_design: float
    functionality: float
    presentation: float
    web_design: float
    impact: float
    final_score: float

    model_config = CAMEL


class LeaderboardEntryOut(BaseModel):
    id: int
    team_name: str
    project_title: str
    created_at: Optional[datetime] = None
    scores: CriterionScoresOut

    model_config = CAMEL


class StandingOut(LeaderboardEntryOut):
    rank: int
    judge_count: int
    movement: str  # up | down | unchanged | new
    previous_rank: Optional[int] = None
    position_change: int = 0


# ------------------------------------------------------------------
# SETTINGS
# ------------------------------------------------------------------

class CriterionRange(BaseModel):
    min: float
    max: float


class ScoringSettings(BaseModel):
    weights: Dict[str, float]
    ranges: Dict[str, CriterionRange]


class MessageResponse(BaseModel):
    message: str
