# judging/main.py
from fastapi import FastAPI, Depends, HTTPException, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi import Response
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.exceptions import ResponseValidationError
from fastapi.exception_handlers import http_exception_handler
from sqlalchemy import text
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from starlette.requests import Request
import os

from judging.database import Base, engine, DB_SOURCE, DB_INFO
from judging.routers import users, participants, scores, leaderboard, settings
from judging import models, crud, schemas
from judging.auth import get_db, get_current_user
from judging.scoring_config import ScoringConfigError

# -----------------------------------------
# Create app instance
# -----------------------------------------
app = FastAPI(title="Judging Leaderboard")

# -----------------------------------------
# Global Error Handling (Keep JSON Responses)
# -----------------------------------------
@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
    print(f"[DB] SQLAlchemy error: {str(exc)[:240]}")
    return JSONResponse(status_code=503, content={"detail": "Database connection unavailable"})

@app.exception_handler(ScoringConfigError)
async def scoring_config_error_handler(request: Request, exc: ScoringConfigError):
    # Stored settings that no longer validate; surface it instead of scoring with them.
    print(f"[SETTINGS] Invalid scoring configuration: {str(exc)[:240]}")
    return JSONResponse(status_code=500, content={"detail": f"Invalid scoring configuration: {exc}"})

@app.exception_handler(ResponseValidationError)
async def response_validation_error_handler(request: Request, exc: ResponseValidationError):
    print(f"[API] Response validation error: {str(exc)[:240]}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Preserve FastAPI's HTTPException behavior.
    if isinstance(exc, HTTPException):
        return await http_exception_handler(request, exc)

    print(f"[UNHANDLED] {type(exc).__name__}: {str(exc)[:240]}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

# -----------------------------------------
# CORS Settings
# -----------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

@app.get("/")
def root():
    return RedirectResponse(url="/docs")

@app.get("/favicon.ico")
def favicon():
    return Response(status_code=204)

@app.get("/health")
def health(db: Session = Depends(get_db)):
    """
    Lightweight health check.
    """
    try:
        db.execute(text("select 1"))
        return {
            "ok": True,
            "db": "ok",
            "db_source": DB_SOURCE,
            "db_driver": (DB_INFO or {}).get("driver"),
        }
    except SQLAlchemyError as e:
        print(f"[HEALTH] Database error: {str(e)[:200]}")
        return {
            "ok": False,
            "db": "error",
            "db_source": DB_SOURCE,
            "db_driver": (DB_INFO or {}).get("driver"),
        }


def seed_admin_if_enabled() -> None:
    """
    Create the initial admin account on startup when SEED_ADMIN=1.

    Opt-in so real deployments never get default credentials silently.
    """

    enabled = str(os.getenv("SEED_ADMIN", "")).strip().lower() in {"1", "true", "yes"}
    if not enabled:
        return

    username = (os.getenv("ADMIN_USERNAME") or "admin").strip()
    password = os.getenv("ADMIN_PASSWORD") or "admin1"
    if not username or not password:
        print("[SEED_ADMIN] Skipped: invalid ADMIN_USERNAME/ADMIN_PASSWORD.")
        return

    from judging.auth import get_password_hash
    from judging.database import SessionLocal

    db = SessionLocal()
    try:
        user = crud.get_user_by_username(db, username)
        if user:
            return
        db.add(
            models.User(
                username=username,
                password=get_password_hash(password),
                role=models.UserRole.admin,
            )
        )
        db.commit()
        print(f"[SEED_ADMIN] Created admin user: {username} (db_source={DB_SOURCE}).")
    except SQLAlchemyError as e:
        db.rollback()
        print(f"[SEED_ADMIN] Seed failed: {type(e).__name__}: {str(e)[:160]}")
    finally:
        db.close()

# -----------------------------------------
# Database initialization
# -----------------------------------------
try:
    Base.metadata.create_all(bind=engine)
    print("[DB] Database connected successfully")
    seed_admin_if_enabled()
except SQLAlchemyError as e:
    print(f"[DB] Warning: Could not create tables: {str(e)[:100]}")

# -----------------------------------------
# Routers
# -----------------------------------------
app.include_router(users.router)
app.include_router(participants.router)
app.include_router(scores.router)
app.include_router(leaderboard.router)
app.include_router(settings.router)

# -----------------------------------------
# LOGIN endpoints
# -----------------------------------------
api = APIRouter(prefix="/api", tags=["auth"])

@api.post("/login", response_model=schemas.Token)
def login(data: schemas.UserLogin, db: Session = Depends(get_db)):
    """
    Login user and return JWT token
    """
    try:
        return crud.authenticate_user(db, username=data.username, password=data.password)
    except HTTPException:
        raise
    except SQLAlchemyError as e:
        print(f"[LOGIN] Database error: {str(e)[:200]}")
        raise HTTPException(status_code=503, detail="Database connection unavailable")

@api.post("/logout", response_model=schemas.MessageResponse)
def logout():
    # Tokens are stateless; the client discards its copy.
    return {"message": "Logged out successfully"}

@api.get("/me", response_model=schemas.UserResponse)
def me(current_user: models.User = Depends(get_current_user)):
    return current_user

app.include_router(api)
