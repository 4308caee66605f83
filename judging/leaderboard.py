"""
Leaderboard aggregation.

Pure functions over score/participant objects (ORM rows or detached
instances). Nothing here touches a database session; callers hand in a
snapshot and get back a freshly computed, ranked leaderboard.

Pipeline:
    resolve_latest_scores -> aggregate_scores -> rank_entries
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from judging.scoring_config import CRITERIA


MOVED_UP = "up"
MOVED_DOWN = "down"
UNCHANGED = "unchanged"
NEW_ENTRY = "new"


@dataclass(frozen=True)
class CriterionScores:
    project_design: float = 0.0
    functionality: float = 0.0
    presentation: float = 0.0
    web_design: float = 0.0
    impact: float = 0.0
    final_score: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "project_design": self.project_design,
            "functionality": self.functionality,
            "presentation": self.presentation,
            "web_design": self.web_design,
            "impact": self.impact,
            "final_score": self.final_score,
        }


UNSCORED = CriterionScores()


@dataclass(frozen=True)
class LeaderboardEntry:
    participant_id: int
    team_name: str
    project_title: str
    created_at: Optional[datetime]
    scores: CriterionScores
    judge_count: int = 0
    rank: int = 0


@dataclass(frozen=True)
class RankMovement:
    participant_id: int
    rank: int
    previous_rank: Optional[int]
    movement: str
    position_change: int = 0


def _recency_key(score) -> tuple:
    # A missing timestamp never beats a real one.
    created = getattr(score, "created_at", None) or datetime.min
    return (created, int(score.id or 0))


def resolve_latest_scores(scores: Iterable, participant_id: int) -> List:
    """
    Keep one submission per judge for the participant: the latest by
    created_at, with the larger id winning identical timestamps.

    Input order is irrelevant. Result is ordered by judge id.
    """
    latest: Dict[int, object] = {}
    for score in scores:
        if int(score.participant_id) != int(participant_id):
            continue
        judge_id = int(score.judge_id)
        current = latest.get(judge_id)
        if current is None or _recency_key(score) > _recency_key(current):
            latest[judge_id] = score
    return [latest[judge_id] for judge_id in sorted(latest)]


def aggregate_scores(resolved: Sequence, weights: Mapping[str, float]) -> CriterionScores:
    """
    Per-criterion arithmetic mean across judges, and the weighted final score.

    An empty submission list is an unscored participant: all zeros.
    No rounding happens here.
    """
    if not resolved:
        return UNSCORED

    count = len(resolved)
    averages = {}
    for criterion in CRITERIA:
        total = 0.0
        for score in resolved:
            total += float(getattr(score, criterion))
        averages[criterion] = total / count

    final_score = 0.0
    for criterion in CRITERIA:
        final_score += averages[criterion] * float(weights[criterion])

    return CriterionScores(final_score=final_score, **averages)


def _rank_key(entry: LeaderboardEntry) -> tuple:
    return (-entry.scores.final_score, entry.participant_id)


def rank_entries(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """
    Final score descending; equal scores ordered by ascending participant id.
    Rank is 1-based position.
    """
    ordered = sorted(entries, key=_rank_key)
    return [
        LeaderboardEntry(
            participant_id=e.participant_id,
            team_name=e.team_name,
            project_title=e.project_title,
            created_at=e.created_at,
            scores=e.scores,
            judge_count=e.judge_count,
            rank=position,
        )
        for position, e in enumerate(ordered, start=1)
    ]


def compute_leaderboard(
    participants: Iterable,
    scores: Iterable,
    weights: Mapping[str, float],
) -> List[LeaderboardEntry]:
    # Bucket once so each participant only scans its own submissions.
    by_participant: Dict[int, List] = {}
    for score in scores:
        by_participant.setdefault(int(score.participant_id), []).append(score)

    entries = []
    for participant in participants:
        pid = int(participant.id)
        resolved = resolve_latest_scores(by_participant.get(pid, []), pid)
        entries.append(
            LeaderboardEntry(
                participant_id=pid,
                team_name=participant.team_name,
                project_title=participant.project_title,
                created_at=getattr(participant, "created_at", None),
                scores=aggregate_scores(resolved, weights),
                judge_count=len(resolved),
            )
        )
    return rank_entries(entries)


def ranking_order(entries: Iterable[LeaderboardEntry]) -> List[int]:
    return [e.participant_id for e in entries]


def rank_movements(
    previous_ranking: Optional[Sequence[int]],
    entries: Sequence[LeaderboardEntry],
) -> List[RankMovement]:
    """
    Compare the current ranking against the previous ordered participant ids.

    position_change is positive when an entry climbed. Without a previous
    ranking every entry is reported unchanged.
    """
    if previous_ranking is None:
        return [
            RankMovement(participant_id=e.participant_id, rank=e.rank, previous_rank=e.rank, movement=UNCHANGED)
            for e in entries
        ]

    previous_positions = {pid: position for position, pid in enumerate(previous_ranking, start=1)}
    movements = []
    for e in entries:
        before = previous_positions.get(e.participant_id)
        if before is None:
            movements.append(
                RankMovement(participant_id=e.participant_id, rank=e.rank, previous_rank=None, movement=NEW_ENTRY)
            )
            continue
        change = before - e.rank
        if change > 0:
            movement = MOVED_UP
        elif change < 0:
            movement = MOVED_DOWN
        else:
            movement = UNCHANGED
        movements.append(
            RankMovement(
                participant_id=e.participant_id,
                rank=e.rank,
                previous_rank=before,
                movement=movement,
                position_change=change,
            )
        )
    return movements
