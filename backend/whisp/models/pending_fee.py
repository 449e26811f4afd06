"""Pending treasury fee database model."""

from sqlalchemy import BigInteger, Column, Index, Integer, Numeric, String, Text

from whisp.database.base import Base


class PendingFee(Base):
    """A protocol-fee transfer that failed and must eventually succeed."""

    __tablename__ = "pending_fees"

    bet_tx = Column(String(128), primary_key=True)
    amount = Column(Numeric(28, 9), nullable=False)
    asset = Column(String(64), nullable=False)
    error = Column(Text, nullable=True)

    # Epoch milliseconds
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=True)

    retry_count = Column(Integer, nullable=False, default=0)
    success_tx = Column(String(128), nullable=True)

    # Epoch ms of the retry worker holding this row, NULL when free
    retry_lock = Column(BigInteger, nullable=True)

    __table_args__ = (
        Index("idx_pending_fees_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<PendingFee {self.bet_tx} {self.amount} retries={self.retry_count}>"
