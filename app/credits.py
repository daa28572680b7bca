# app/credits.py
import logging
from dataclasses import dataclass
from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from app.models import Credits

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeductResult:
    success: bool
    error: str | None = None


class CreditLedger:
    """Per-user credit balances.

    ``deduct`` is one guarded UPDATE: the balance check and the decrement
    happen in the same statement, so concurrent submissions can never both
    spend the last credit.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def deduct(self, user_id: str, amount: int = 1) -> DeductResult:
        if amount <= 0:
            raise ValueError("amount must be positive")
        with self._session_factory() as db:
            res = db.execute(
                update(Credits)
                .where(Credits.user_id == user_id, Credits.credits_remaining >= amount)
                .values(credits_remaining=Credits.credits_remaining - amount)
            )
            db.commit()
            if res.rowcount == 1:
                return DeductResult(success=True)

            exists = db.get(Credits, user_id) is not None
        error = "Insufficient credits" if exists else "No credit balance found"
        logger.info("Credit deduction refused for user %s: %s", user_id, error)
        return DeductResult(success=False, error=error)

    def get(self, user_id: str) -> Credits | None:
        with self._session_factory() as db:
            return db.get(Credits, user_id)

    def set_allowance(self, user_id: str, total: int, resets_at=None) -> Credits:
        """Reset a balance to a full allowance (billing events, seeding)."""
        with self._session_factory() as db:
            row = db.get(Credits, user_id)
            if row is None:
                row = Credits(user_id=user_id)
                db.add(row)
            row.credits_total = total
            row.credits_remaining = total
            row.resets_at = resets_at
            db.commit()
            return row
