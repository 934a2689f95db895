"""
Schémas Pydantic pour les élèves.
Les noms exposés par l'API sont en camelCase (studentId, imageAssetId...) via des alias.
"""

import uuid
from datetime import datetime
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator


def check_email(value: str) -> str:
    """
    Vérifie le format d'une adresse et la retourne telle que saisie (espaces retirés).
    La forme normalisée n'est jamais conservée : l'email est un champ d'identité chiffré,
    comparé octet par octet à la connexion. Les noms affichés ("Nom <adresse>") sont refusés.
    """
    value = value.strip()
    try:
        validate_email(value, check_deliverability=False, globally_deliverable=False)
    except EmailNotValidError as exc:
        raise ValueError(f"Adresse email invalide : {exc}") from exc
    return value


class StudentCreate(BaseModel):
    """Champs validés d'un ajout (POST /add-student), hors image."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    student_id: str = Field(alias="studentId")
    email: str
    course: str
    year: int

    @field_validator("name", "student_id", "course")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip()

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        return check_email(v)


class StudentUpdate(BaseModel):
    """Mise à jour partielle (PUT /update-student/{id}). Les champs absents ne sont pas modifiés."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    student_id: Optional[str] = Field(default=None, alias="studentId")
    email: Optional[str] = None
    course: Optional[str] = None
    year: Optional[int] = None
    image: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_format(cls, v: Optional[str]) -> Optional[str]:
        return check_email(v) if v is not None else v


class StudentResponse(BaseModel):
    """Élève tel qu'exposé aux clients, champs d'identité déchiffrés."""
    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID
    name: str
    student_id: str = Field(alias="studentId")
    email: str
    course: str
    year: int
    image: Optional[str] = None
    image_asset_id: Optional[str] = Field(default=None, alias="imageAssetId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class StudentMutationResponse(BaseModel):
    message: str
    student: StudentResponse


class MessageResponse(BaseModel):
    message: str


class LoginRequest(BaseModel):
    """
    Identifiants de connexion d'un élève.
    Champs optionnels ici : l'absence est signalée en 400 par le service, pas en 422.
    """
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    student_id: Optional[str] = Field(default=None, alias="studentId")
