"""Nullifier database model."""

from sqlalchemy import BigInteger, Column, String

from whisp.database.base import Base


class Nullifier(Base):
    """A claim token that has already been consumed."""

    __tablename__ = "nullifiers"

    nullifier = Column(String(256), primary_key=True)
    used_at = Column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<Nullifier {self.nullifier[:16]}>"
