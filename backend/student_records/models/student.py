"""
Modèle SQLAlchemy pour la table students.
Les colonnes name, student_id et email contiennent du texte chiffré (voir services/cipher.py).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint, Uuid, func

from student_records.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Student(Base):
    __tablename__ = "students"
    # Le chiffrement déterministe rend l'unicité vérifiable directement sur le texte chiffré
    __table_args__ = (
        UniqueConstraint("student_id", "email", name="uq_students_identity"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    student_id = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    course = Column(String(255), nullable=False)
    year = Column(Integer, nullable=False)
    image = Column(String(1000), nullable=True)
    image_asset_id = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
