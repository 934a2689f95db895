"""
Router pour les élèves.
Ajout avec photo (POST /add-student), mise à jour partielle (PUT /update-student/{id}),
suppression (DELETE /delete-student/{id}), listage (GET /get-students)
et détail (GET /get-student/{id}).
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from student_records.database import get_db
from student_records.schemas.student import (
    MessageResponse,
    StudentMutationResponse,
    StudentResponse,
)
from student_records.services import student_service
from student_records.services.cipher import FieldCipher, get_cipher
from student_records.services.media_host import MediaHost, get_media_host

router = APIRouter(tags=["Élèves"])


@router.post(
    "/add-student",
    response_model=StudentMutationResponse,
    status_code=201,
    summary="Ajouter un élève avec sa photo",
)
def add_student(
    name: Optional[str] = Form(None),
    student_id: Optional[str] = Form(None, alias="studentId"),
    email: Optional[str] = Form(None),
    course: Optional[str] = Form(None),
    year: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    cipher: FieldCipher = Depends(get_cipher),
    media_host: MediaHost = Depends(get_media_host),
):
    """
    Crée un élève à partir d'un formulaire multipart.
    Tous les champs et l'image sont obligatoires ; les champs manquants sont listés en 400.
    """
    fields = {"name": name, "studentId": student_id, "email": email, "course": course, "year": year}
    student = student_service.add_student(db, cipher, media_host, fields, image)
    return StudentMutationResponse(message="Élève ajouté avec succès.", student=student)


@router.put(
    "/update-student/{student_id}",
    response_model=StudentMutationResponse,
    summary="Modifier un élève",
)
def update_student(
    student_id: uuid.UUID,
    name: Optional[str] = Form(None),
    new_student_id: Optional[str] = Form(None, alias="studentId"),
    email: Optional[str] = Form(None),
    course: Optional[str] = Form(None),
    year: Optional[str] = Form(None),
    image: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    cipher: FieldCipher = Depends(get_cipher),
):
    """Met à jour les champs fournis. Les champs absents ou vides ne sont pas modifiés."""
    fields = {
        "name": name,
        "studentId": new_student_id,
        "email": email,
        "course": course,
        "year": year,
        "image": image,
    }
    student = student_service.update_student(db, cipher, student_id, fields)
    return StudentMutationResponse(message="Élève mis à jour avec succès.", student=student)


@router.delete(
    "/delete-student/{student_id}",
    response_model=MessageResponse,
    summary="Supprimer un élève",
)
def delete_student(student_id: uuid.UUID, db: Session = Depends(get_db)):
    """Supprime définitivement un élève."""
    student_service.delete_student(db, student_id)
    return MessageResponse(message="Élève supprimé avec succès.")


@router.get("/get-students", response_model=List[StudentResponse], summary="Lister tous les élèves")
def list_students(db: Session = Depends(get_db), cipher: FieldCipher = Depends(get_cipher)):
    """Retourne tous les élèves, du plus récent au plus ancien."""
    return student_service.list_students(db, cipher)


@router.get("/get-student/{student_id}", response_model=StudentResponse, summary="Détail d'un élève")
def get_student(
    student_id: uuid.UUID,
    db: Session = Depends(get_db),
    cipher: FieldCipher = Depends(get_cipher),
):
    return student_service.get_student(db, cipher, student_id)
