"""
SQLAlchemy ORM Models
Prescription Scanner
"""

from sqlalchemy import BigInteger, Column, JSON, String

from app.database.session import Base


class PrescriptionRecord(Base):
    """One stored prescription record (database-backed result store)."""

    __tablename__ = "prescription_records"

    # Millisecond epoch at creation, assigned by the store
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    data = Column(JSON, nullable=True)
    # ISO-8601 string kept verbatim so every backing returns the same text
    created_at = Column(String(40), nullable=False)

    def __repr__(self) -> str:
        return f"<PrescriptionRecord id={self.id} created_at={self.created_at}>"
