"""
Router de connexion des élèves (POST /login).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from student_records.database import get_db
from student_records.schemas.student import LoginRequest, StudentResponse
from student_records.services.cipher import FieldCipher, get_cipher
from student_records.services.login_service import authenticate_student

router = APIRouter(tags=["Connexion"])


@router.post("/login", response_model=StudentResponse, summary="Connexion d'un élève")
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    cipher: FieldCipher = Depends(get_cipher),
):
    """Vérifie l'email et le matricule ; retourne la fiche déchiffrée de l'élève."""
    return authenticate_student(db, cipher, data.email, data.student_id)
