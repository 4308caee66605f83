# judging/routers/scores.py
from fastapi import APIRouter, Depends, HTTPException
from typing import List
from sqlalchemy.orm import Session
from judging.auth import get_db, get_current_user, is_admin
from judging import crud, schemas, models

router = APIRouter(prefix="/api/scores", tags=["scores"])


def _load_own_score(db: Session, score_id: int, current_user: models.User, action: str) -> models.Score:
    score = crud.get_score(db, score_id)
    if not score:
        raise HTTPException(status_code=404, detail="Score not found")
    if not is_admin(current_user) and score.judge_id != current_user.id:
        raise HTTPException(status_code=403, detail=f"You can only {action} your own scores")
    return score


@router.get("", response_model=List[schemas.ScoreOut])
def list_scores(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return crud.list_scores(db)

@router.get("/judge/{judge_id}", response_model=List[schemas.ScoreOut])
def list_judge_scores(judge_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return crud.list_scores_for_judge(db, judge_id)

@router.get("/participant/{participant_id}", response_model=List[schemas.ScoreOut])
def list_participant_scores(participant_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return crud.list_scores_for_participant(db, participant_id)

@router.post("", response_model=schemas.ScoreOut, status_code=201)
def submit_score(
    score_in: schemas.ScoreCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    # Admins may enter a score on behalf of any judge.
    if not is_admin(current_user) and score_in.judge_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only submit scores as yourself")
    return crud.create_score(db, score_in)

@router.put("/{score_id}", response_model=schemas.ScoreOut)
def update_score(
    score_id: int,
    score_in: schemas.ScoreUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    score = _load_own_score(db, score_id, current_user, "update")
    if (
        not is_admin(current_user)
        and score_in.judge_id is not None
        and score_in.judge_id != current_user.id
    ):
        raise HTTPException(status_code=403, detail="You can only submit scores as yourself")
    return crud.update_score(db, score, score_in)

@router.delete("/{score_id}", response_model=schemas.MessageResponse)
def delete_score(
    score_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    _load_own_score(db, score_id, current_user, "delete")
    crud.delete_score(db, score_id)
    return {"message": "Score deleted successfully"}
