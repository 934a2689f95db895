"""
Connexion d'un élève par email + matricule.

Les deux valeurs sont chiffrées de façon déterministe puis comparées
directement aux colonnes chiffrées : aucune donnée n'est déchiffrée pour chercher.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from student_records.errors import AuthenticationError, ValidationError
from student_records.models.student import Student
from student_records.schemas.student import StudentResponse, check_email
from student_records.services.cipher import FieldCipher
from student_records.services.student_service import datastore_errors, to_response

logger = logging.getLogger(__name__)

# Même message quel que soit le champ erroné
INVALID_CREDENTIALS_MESSAGE = "Email ou matricule invalide."


def normalize_email(email: str) -> Optional[str]:
    """Même contrôle qu'à l'enregistrement, adresse conservée telle quelle ; None si mal formée."""
    try:
        return check_email(email)
    except ValueError:
        return None


def authenticate_student(
    db: Session,
    cipher: FieldCipher,
    email: Optional[str],
    student_id: Optional[str],
) -> StudentResponse:
    """
    Retourne l'élève dont l'email et le matricule correspondent exactement.
    Lève ValidationError si un champ manque, AuthenticationError si aucun élève ne correspond.
    """
    email = (email or "").strip()
    student_id = (student_id or "").strip()

    missing = [name for name, value in (("email", email), ("studentId", student_id)) if not value]
    if missing:
        raise ValidationError(
            "L'email et le matricule sont obligatoires.", missing_fields=missing
        )

    normalized = normalize_email(email)
    if normalized is None:
        logger.info("Connexion refusée : identifiants invalides")
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    with datastore_errors(db, "la connexion"):
        student = db.execute(
            select(Student).where(
                Student.email == cipher.encrypt(normalized),
                Student.student_id == cipher.encrypt(student_id),
            )
        ).scalar_one_or_none()

    if student is None:
        logger.info("Connexion refusée : identifiants invalides")
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    logger.info("Connexion réussie : élève %s", student.id)
    return to_response(student, cipher)
