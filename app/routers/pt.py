"""
PT Router - Personal-training duration and fee options for a member
"""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.db import get_db_connection
from app.errors import ServiceError, InternalError, NotFound, ValidationFailed
from app.services import pt_planner, subscriptions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pt", tags=["Personal Training"])


# ============== Request Models ==============

class DurationOptionsRequest(BaseModel):
    member_id: int = Field(..., gt=0)
    trainer_id: int = Field(..., gt=0)
    branch_id: Optional[int] = None


# ============== Helpers ==============

def _get_active_trainer(cursor, trainer_id: int, branch_id: Optional[int]) -> Optional[dict]:
    query = """
        SELECT id, name, specialization, monthly_fee, branch_id
        FROM personal_trainers
        WHERE id = %s AND is_active = 1
    """
    params = [trainer_id]
    if branch_id is not None:
        query += " AND branch_id = %s"
        params.append(branch_id)
    cursor.execute(query, params)
    return cursor.fetchone()


def _get_current_pt_end_date(cursor, member_id: int, today: date):
    """End date of the member's latest PT window that has not run out yet"""
    cursor.execute(
        """
        SELECT end_date
        FROM pt_subscriptions
        WHERE member_id = %s AND end_date >= %s
          AND status NOT IN ('inactive', 'cancelled')
        ORDER BY end_date DESC
        LIMIT 1
        """,
        (member_id, today),
    )
    row = cursor.fetchone()
    return row["end_date"] if row else None


# ============== Endpoints ==============

@router.post("/duration-options")
def get_duration_options(request: DurationOptionsRequest):
    """List 1-3 month PT options plus a "Till <membership end>" option, with prorated fees"""
    today = date.today()
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        membership = subscriptions.get_latest_subscription(conn, request.member_id)
        membership_status = subscriptions.classify_subscription(membership, today)
        if not subscriptions.may_check_in_normally(membership_status):
            raise ValidationFailed(
                "You need an active gym membership to add personal training.",
                "NO_ACTIVE_MEMBERSHIP",
            )

        trainer = _get_active_trainer(cursor, request.trainer_id, request.branch_id)
        if not trainer:
            raise NotFound("Trainer not found", "TRAINER_NOT_FOUND")

        existing_pt_end = _get_current_pt_end_date(cursor, request.member_id, today)
        options = pt_planner.plan(
            existing_pt_end,
            membership["start_date"],
            membership["end_date"],
            trainer["monthly_fee"],
            today=today,
        )
        valid = pt_planner.valid_options(options)

        return {
            "success": True,
            "data": {
                "pt_start_date": pt_planner.compute_pt_start_date(
                    existing_pt_end, membership["start_date"], today
                ).isoformat(),
                "membership_end_date": str(membership["end_date"])[:10],
                "trainer": {"id": trainer["id"], "name": trainer["name"], "monthly_fee": trainer["monthly_fee"]},
                "options": [opt.to_dict() for opt in options],
                "valid_count": len(valid),
                "can_extend": bool(valid),
                "message": None if valid else "Membership ends too soon to add personal training.",
            },
        }

    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Error building PT duration options: {e}", exc_info=True)
        raise InternalError("Failed to build PT duration options", "PT_OPTIONS_FAILED")
    finally:
        cursor.close()
        conn.close()
