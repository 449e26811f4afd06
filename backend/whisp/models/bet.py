"""Bet database model."""

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Float,
    Index,
    Numeric,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB

from whisp.database.base import Base

OUTCOMES = ("yes", "no")
BET_STATUSES = ("pending", "won", "lost")


class Bet(Base):
    """One wager on one market outcome, keyed by its transfer receipt."""

    __tablename__ = "bets"

    tx = Column(String(128), primary_key=True)

    # Wager details
    market_id = Column(String(128), nullable=False, index=True)
    market_title = Column(String(512), nullable=False, default="")
    outcome = Column(String(3), nullable=False)
    amount = Column(Numeric(28, 9), nullable=False)
    wallet = Column(String(64), nullable=False, index=True)
    asset = Column(String(64), nullable=True)
    placed_at = Column(BigInteger, nullable=False)
    odds = Column(Float, nullable=True)
    potential_payout = Column(Float, nullable=True)

    # Lifecycle
    status = Column(String(7), nullable=False, default="pending")
    claimed = Column(Boolean, nullable=False, default=False)
    claim_lock = Column(BigInteger, nullable=True)

    # {"commitmentHash", "nullifier", "timestamp"}
    commitment = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    __table_args__ = (
        CheckConstraint("outcome IN ('yes', 'no')", name="valid_bet_outcome"),
        CheckConstraint(
            "status IN ('pending', 'won', 'lost')",
            name="valid_bet_status",
        ),
        CheckConstraint("amount > 0", name="positive_bet_amount"),
        CheckConstraint("NOT claimed OR status = 'won'", name="claimed_implies_won"),
        Index("idx_bets_status_claimed", "status", "claimed"),
    )

    @property
    def nullifier(self) -> str | None:
        """Nullifier from the stored commitment, if any."""
        if isinstance(self.commitment, dict):
            return self.commitment.get("nullifier") or None
        return None

    def __repr__(self) -> str:
        return f"<Bet {self.tx} {self.outcome} {self.amount} {self.status}>"
