from __future__ import annotations
# judging/crud.py
import json
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session
from fastapi import HTTPException

from judging import models, schemas
from judging.auth import get_password_hash, password_matches, create_access_token
from judging.leaderboard import LeaderboardEntry, compute_leaderboard
from judging.scoring_config import (
    BASE_SCORING_CONFIG,
    CRITERIA,
    SETTING_KEYS,
    ScoringConfig,
    ScoringConfigError,
    out_of_range_criteria,
    parse_ranges,
    parse_weights,
)


def _normalize_role(value: Optional[str]) -> models.UserRole:
    raw = str(getattr(value, "value", value) or "").strip().lower()
    if not raw:
        return models.UserRole.judge
    try:
        return models.UserRole(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Role must be 'admin' or 'judge'")


def _role_str(user: models.User) -> str:
    return str(getattr(user.role, "value", user.role) or "judge")

# ------------------------------------------------------------------
# USERS / JUDGES
# ------------------------------------------------------------------

def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.username == username).first()


def list_users(db: Session) -> List[models.User]:
    return db.query(models.User).order_by(models.User.id).all()


def create_user(db: Session, user: schemas.UserCreate):
    username = user.username.strip()
    if not username:
        raise HTTPException(status_code=400, detail="Username is required")
    if get_user_by_username(db, username):
        raise HTTPException(status_code=409, detail="Username already exists")
    db_user = models.User(
        username=username,
        password=get_password_hash(user.password),
        role=_normalize_role(user.role),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    print(f"[USERS] Created {_role_str(db_user)} account '{db_user.username}' (id={db_user.id})")
    return db_user


def update_user(db: Session, user_id: int, user_in: schemas.UserUpdate):
    user = get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user_in.username is not None:
        username = user_in.username.strip()
        if not username:
            raise HTTPException(status_code=400, detail="Username is required")
        existing = get_user_by_username(db, username)
        if existing and existing.id != user.id:
            raise HTTPException(status_code=409, detail="Username already exists")
        user.username = username
    if user_in.password:
        user.password = get_password_hash(user_in.password)
    if user_in.role is not None:
        user.role = _normalize_role(user_in.role)

    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: int) -> bool:
    """
    Scores submitted by the user are left in place; they remain part of the
    competition record and keep counting toward the leaderboard.
    """
    user = get_user(db, user_id)
    if not user:
        return False
    db.delete(user)
    db.commit()
    print(f"[USERS] Deleted user id={user_id}")
    return True


def authenticate_user(db: Session, username: str, password: str):
    user = get_user_by_username(db, (username or "").strip())
    if not user or not password_matches(user, password):
        print(f"[AUTH] Failed login for '{username}'")
        raise HTTPException(status_code=401, detail="Invalid username or password")
    role = _role_str(user)
    token = create_access_token({
        "sub": user.username,
        "role": role,
    })
    return {
        "access_token": token,
        "token_type": "bearer",
        "role": role,
        "id": user.id,
        "username": user.username,
    }

# ------------------------------------------------------------------
# PARTICIPANTS
# ------------------------------------------------------------------

def get_participant(db: Session, participant_id: int) -> Optional[models.Participant]:
    return db.query(models.Participant).filter(models.Participant.id == participant_id).first()


def list_participants(db: Session) -> List[models.Participant]:
    return db.query(models.Participant).order_by(models.Participant.id).all()


def create_participant(db: Session, participant_in: schemas.ParticipantCreate):
    team_name = participant_in.team_name.strip()
    project_title = participant_in.project_title.strip()
    if not team_name or not project_title:
        raise HTTPException(status_code=400, detail="Team name and project title are required")
    participant = models.Participant(team_name=team_name, project_title=project_title)
    db.add(participant)
    db.commit()
    db.refresh(participant)
    return participant


def update_participant(db: Session, participant_id: int, participant_in: schemas.ParticipantUpdate):
    participant = get_participant(db, participant_id)
    if not participant:
        raise HTTPException(status_code=404, detail="Participant not found")
    if participant_in.team_name is not None:
        team_name = participant_in.team_name.strip()
        if not team_name:
            raise HTTPException(status_code=400, detail="Team name is required")
        participant.team_name = team_name
    if participant_in.project_title is not None:
        project_title = participant_in.project_title.strip()
        if not project_title:
            raise HTTPException(status_code=400, detail="Project title is required")
        participant.project_title = project_title
    db.commit()
    db.refresh(participant)
    return participant


def delete_participant(db: Session, participant_id: int) -> bool:
    participant = get_participant(db, participant_id)
    if not participant:
        return False
    # Scores go with the participant (relationship cascade).
    removed = len(participant.scores)
    db.delete(participant)
    db.commit()
    print(f"[PARTICIPANTS] Deleted participant id={participant_id} and {removed} score(s)")
    return True

# ------------------------------------------------------------------
# SCORES
# ------------------------------------------------------------------

def get_score(db: Session, score_id: int) -> Optional[models.Score]:
    return db.query(models.Score).filter(models.Score.id == score_id).first()


def list_scores(db: Session) -> List[models.Score]:
    return db.query(models.Score).order_by(models.Score.id).all()


def list_scores_for_participant(db: Session, participant_id: int) -> List[models.Score]:
    return (
        db.query(models.Score)
        .filter(models.Score.participant_id == participant_id)
        .order_by(models.Score.id)
        .all()
    )


def list_scores_for_judge(db: Session, judge_id: int) -> List[models.Score]:
    return (
        db.query(models.Score)
        .filter(models.Score.judge_id == judge_id)
        .order_by(models.Score.id)
        .all()
    )


def _check_references(db: Session, participant_id: int, judge_id: int) -> None:
    if not get_participant(db, participant_id):
        raise HTTPException(status_code=404, detail="Participant not found")
    if not get_user(db, judge_id):
        raise HTTPException(status_code=404, detail="Judge not found")


def _check_ranges(values: dict, config: ScoringConfig) -> None:
    bad = out_of_range_criteria(values, config)
    if bad:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Invalid score data",
                "criteria": {c: list(config.range_for(c)) for c in bad},
            },
        )


def create_score(db: Session, score_in: schemas.ScoreCreate):
    _check_references(db, score_in.participant_id, score_in.judge_id)
    values = {c: float(getattr(score_in, c)) for c in CRITERIA}
    _check_ranges(values, get_scoring_config(db))

    score = models.Score(
        participant_id=int(score_in.participant_id),
        judge_id=int(score_in.judge_id),
        comments=score_in.comments,
        **values,
    )
    db.add(score)
    db.commit()
    db.refresh(score)
    print(
        f"[SCORES] Stored score id={score.id} participant={score.participant_id} "
        f"judge={score.judge_id}"
    )
    return score


def update_score(db: Session, score: models.Score, score_in: schemas.ScoreUpdate):
    """
    Partial update. The merged submission is validated exactly like a new one;
    created_at is kept, so an edit does not change which submission is latest.
    """
    changes = score_in.model_dump(exclude_unset=True)
    for key in ("participant_id", "judge_id", *CRITERIA):
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=400, detail=f"{key} cannot be null")

    participant_id = int(changes.get("participant_id", score.participant_id))
    judge_id = int(changes.get("judge_id", score.judge_id))
    if participant_id != score.participant_id or judge_id != score.judge_id:
        _check_references(db, participant_id, judge_id)

    values = {c: float(changes.get(c, getattr(score, c))) for c in CRITERIA}
    _check_ranges(values, get_scoring_config(db))

    score.participant_id = participant_id
    score.judge_id = judge_id
    for criterion, value in values.items():
        setattr(score, criterion, value)
    if "comments" in changes:
        score.comments = changes["comments"]

    db.commit()
    db.refresh(score)
    print(f"[SCORES] Updated score id={score.id}")
    return score


def delete_score(db: Session, score_id: int) -> bool:
    score = get_score(db, score_id)
    if not score:
        return False
    db.delete(score)
    db.commit()
    return True

# ------------------------------------------------------------------
# SCORING SETTINGS
# ------------------------------------------------------------------

def _setting_json(db: Session, key: str) -> Optional[dict]:
    row = db.query(models.AppSetting).filter(models.AppSetting.key == key).first()
    if not row or row.value is None:
        return None
    raw = str(row.value).strip()
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ScoringConfigError(f"Stored setting '{key}' is not valid JSON: {e}")
    if not isinstance(value, dict):
        raise ScoringConfigError(f"Stored setting '{key}' must be a JSON object.")
    return value


def get_scoring_config(db: Session) -> ScoringConfig:
    stored_weights = _setting_json(db, SETTING_KEYS["weights"])
    stored_ranges = _setting_json(db, SETTING_KEYS["ranges"])
    if stored_weights is None and stored_ranges is None:
        return BASE_SCORING_CONFIG

    weights = dict(BASE_SCORING_CONFIG.weights)
    ranges = dict(BASE_SCORING_CONFIG.ranges)
    if stored_weights is not None:
        weights = parse_weights(stored_weights)
    if stored_ranges is not None:
        ranges.update(parse_ranges(stored_ranges))
    return ScoringConfig(weights=weights, ranges=ranges)


def _upsert_setting(db: Session, key: str, value: str) -> None:
    row = db.query(models.AppSetting).filter(models.AppSetting.key == key).first()
    if row:
        row.value = value
        row.updated_at = datetime.utcnow()
    else:
        db.add(models.AppSetting(key=key, value=value))


def save_scoring_config(db: Session, config: ScoringConfig) -> ScoringConfig:
    _upsert_setting(db, SETTING_KEYS["weights"], json.dumps({c: config.weights[c] for c in CRITERIA}))
    _upsert_setting(
        db,
        SETTING_KEYS["ranges"],
        json.dumps({c: list(config.ranges[c]) for c in CRITERIA}),
    )
    db.commit()
    return config

# ------------------------------------------------------------------
# LEADERBOARD
# ------------------------------------------------------------------

def build_leaderboard(db: Session) -> List[LeaderboardEntry]:
    config = get_scoring_config(db)
    participants = list_participants(db)
    scores = list_scores(db)
    return compute_leaderboard(participants, scores, config.weights)
