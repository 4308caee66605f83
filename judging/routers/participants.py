# judging/routers/participants.py
from fastapi import APIRouter, Depends, HTTPException
from typing import List
from sqlalchemy.orm import Session
from judging.auth import get_db, get_current_user, require_admin
from judging import crud, schemas

router = APIRouter(prefix="/api/participants", tags=["participants"])

@router.get("", response_model=List[schemas.ParticipantOut])
def list_participants(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return crud.list_participants(db)

@router.get("/{participant_id}", response_model=schemas.ParticipantOut)
def get_participant(participant_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    participant = crud.get_participant(db, participant_id)
    if not participant:
        raise HTTPException(status_code=404, detail="Participant not found")
    return participant

@router.post("", response_model=schemas.ParticipantOut, status_code=201)
def create_participant(
    participant_in: schemas.ParticipantCreate,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    return crud.create_participant(db, participant_in)

@router.put("/{participant_id}", response_model=schemas.ParticipantOut)
def update_participant(
    participant_id: int,
    participant_in: schemas.ParticipantUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    return crud.update_participant(db, participant_id, participant_in)

@router.delete("/{participant_id}", response_model=schemas.MessageResponse)
def delete_participant(participant_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    """Delete a participant together with every score submitted for it."""
    if not crud.delete_participant(db, participant_id):
        raise HTTPException(status_code=404, detail="Participant not found")
    return {"message": "Participant deleted successfully"}
