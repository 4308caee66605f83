# judging/routers/users.py
from fastapi import APIRouter, Depends, HTTPException
from typing import List
from sqlalchemy.orm import Session
from judging.auth import get_db, require_admin
from judging import crud, schemas

router = APIRouter(prefix="/api/users", tags=["users"])

@router.get("", response_model=List[schemas.UserResponse])
def list_users(db: Session = Depends(get_db), _=Depends(require_admin)):
    return crud.list_users(db)

@router.post("", response_model=schemas.UserResponse, status_code=201)
def create_user(user: schemas.UserCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    return crud.create_user(db, user)

@router.put("/{user_id}", response_model=schemas.UserResponse)
def update_user(user_id: int, user_in: schemas.UserUpdate, db: Session = Depends(get_db), _=Depends(require_admin)):
    return crud.update_user(db, user_id, user_in)

@router.delete("/{user_id}", response_model=schemas.MessageResponse)
def delete_user(user_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    if not crud.delete_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted successfully"}
