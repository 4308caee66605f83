# judging/routers/settings.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from judging import crud, schemas
from judging.auth import get_current_user, get_db, require_admin
from judging.scoring_config import (
    CRITERIA,
    ScoringConfig,
    ScoringConfigError,
    parse_ranges,
    parse_weights,
)

router = APIRouter(prefix="/api/settings", tags=["settings"])


def _settings_payload(config: ScoringConfig) -> schemas.ScoringSettings:
    return schemas.ScoringSettings(
        weights={to_camel(c): config.weights[c] for c in CRITERIA},
        ranges={
            to_camel(c): schemas.CriterionRange(min=config.ranges[c][0], max=config.ranges[c][1])
            for c in CRITERIA
        },
    )


@router.get("/scoring", response_model=schemas.ScoringSettings)
def get_scoring_settings(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return _settings_payload(crud.get_scoring_config(db))


@router.put("/scoring", response_model=schemas.ScoringSettings)
def update_scoring_settings(
    req: schemas.ScoringSettings,
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    """
    Replace the scoring weights and per-criterion ranges.
    Weights must cover every criterion and sum to 1.0.
    """
    try:
        config = ScoringConfig(
            weights=parse_weights(req.weights),
            ranges=parse_ranges({k: {"min": r.min, "max": r.max} for k, r in req.ranges.items()}),
        )
    except ScoringConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))

    crud.save_scoring_config(db, config)
    print(f"[SETTINGS] Scoring config updated by '{current_user.username}'")
    return _settings_payload(config)
