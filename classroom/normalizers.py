"""
Pure mappings from raw Classroom resources to the service's schemas.

No I/O.  The only failure is a resource without an ``id``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from utils.errors import MissingIdentifierError
from utils.schemas import (
    Course,
    CourseworkItem,
    Submission,
    SubmissionHistoryEntry,
    UserProfile,
)


# ── Helpers ──────────────────────────────────────────────────────────────


def _require_id(raw: Mapping[str, Any], kind: str) -> str:
    ident = raw.get("id")
    if ident in (None, ""):
        raise MissingIdentifierError(kind)
    return str(ident)


def _number(value: Any) -> Optional[float]:
    """Keep real numbers only; bools and numeric strings become None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _format_utc(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _whole(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value == 0:
        return default
    return value


def due_date_from(date: Optional[Mapping[str, Any]], time: Optional[Mapping[str, Any]]) -> Optional[str]:
    """
    Combine Classroom's split ``dueDate`` / ``dueTime`` into one UTC instant.

    Missing date parts fall back to 1970-01-01, missing time parts to zero.
    Out-of-range parts roll over into the next unit (Feb 30 is Mar 1,
    month 13 is January of the following year).  A date that cannot be
    represented at all yields None.
    """
    if not date:
        return None
    time = time or {}
    year = _whole(date.get("year"), 1970)
    month_index = _whole(date.get("month"), 1) - 1
    try:
        moment = datetime(year + month_index // 12, month_index % 12 + 1, 1, tzinfo=timezone.utc) + timedelta(
            days=_whole(date.get("day"), 1) - 1,
            hours=_whole(time.get("hours"), 0),
            minutes=_whole(time.get("minutes"), 0),
            seconds=_whole(time.get("seconds"), 0),
        )
    except (ValueError, OverflowError):
        return None
    return _format_utc(moment)


# ── Entities ─────────────────────────────────────────────────────────────


def normalize_course(raw: Mapping[str, Any]) -> Course:
    return Course(
        id=_require_id(raw, "course"),
        name=raw.get("name") or "",
        section=raw.get("section") or None,
        state=raw.get("courseState"),
        owner_id=raw.get("ownerId"),
        alternate_link=raw.get("alternateLink") or None,
        room=raw.get("room") or None,
        creation_time=raw.get("creationTime") or None,
        update_time=raw.get("updateTime") or None,
    )


def normalize_user_profile(raw: Mapping[str, Any]) -> UserProfile:
    name = raw.get("name") or {}
    return UserProfile(
        id=_require_id(raw, "user profile"),
        email=raw.get("emailAddress") or None,
        name=name.get("fullName") or None,
        photo_url=raw.get("photoUrl") or None,
    )


def normalize_student(raw: Mapping[str, Any]) -> UserProfile:
    """Roster entries wrap the profile; fall back to the roster's ``userId``."""
    profile: Dict[str, Any] = dict(raw.get("profile") or {})
    if not profile.get("id") and raw.get("userId"):
        profile["id"] = raw["userId"]
    return normalize_user_profile(profile)


def normalize_coursework(raw: Mapping[str, Any]) -> CourseworkItem:
    return CourseworkItem(
        id=_require_id(raw, "coursework item"),
        course_id=raw.get("courseId"),
        title=raw.get("title") or None,
        description=raw.get("description") or None,
        due_date=due_date_from(raw.get("dueDate"), raw.get("dueTime")),
        max_points=_number(raw.get("maxPoints")),
        state=raw.get("state"),
        work_type=raw.get("workType"),
        alternate_link=raw.get("alternateLink") or None,
        creation_time=raw.get("creationTime") or None,
        update_time=raw.get("updateTime") or None,
    )


def _history_entry(raw: Mapping[str, Any]) -> SubmissionHistoryEntry:
    state_history = raw.get("stateHistory") or {}
    grade_history = raw.get("gradeHistory") or {}
    return SubmissionHistoryEntry(
        state=state_history.get("state"),
        grade=_number(grade_history.get("pointsEarned")),
        timestamp=state_history.get("stateTimestamp") or grade_history.get("gradeTimestamp") or None,
    )


def normalize_submission(raw: Mapping[str, Any]) -> Submission:
    late = raw.get("late")
    history = raw.get("submissionHistory")
    return Submission(
        id=_require_id(raw, "submission"),
        course_id=raw.get("courseId"),
        course_work_id=raw.get("courseWorkId"),
        user_id=raw.get("userId"),
        state=raw.get("state"),
        assigned_grade=_number(raw.get("assignedGrade")),
        draft_grade=_number(raw.get("draftGrade")),
        late=late if isinstance(late, bool) else None,
        update_time=raw.get("updateTime") or None,
        history=[_history_entry(h) for h in history] if isinstance(history, list) else [],
    )
