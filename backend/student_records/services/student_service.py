"""
Service métier des élèves : CRUD sur la table students.

Les champs d'identité sont chiffrés avant chaque écriture et déchiffrés avant
chaque réponse. studentId et email utilisent le chiffrement déterministe
(recherche par égalité et contrainte d'unicité), name le chiffrement à IV aléatoire.
Les noms écrits avec l'ancien chiffrement déterministe ne sont donc plus lisibles :
ils sont renvoyés sous leur forme chiffrée.
"""

import logging
import uuid
from contextlib import contextmanager
from typing import Mapping, Optional

from fastapi import UploadFile
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from student_records.errors import (
    ConflictError,
    NotFoundError,
    StudentRecordError,
    UpstreamError,
    ValidationError,
)
from student_records.models.student import Student, utcnow
from student_records.schemas.student import StudentCreate, StudentResponse, StudentUpdate
from student_records.services.cipher import FieldCipher
from student_records.services.media_host import MediaHost, UploadedAsset
from student_records.services.student_mapper import to_api_shape, to_store_shape
from student_records.services.upload_staging import publish_image

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "studentId", "email", "course", "year")

# Colonnes chiffrées, par mode de chiffrement
DETERMINISTIC_COLUMNS = ("student_id", "email")
RANDOMIZED_COLUMNS = ("name",)

NOT_FOUND_MESSAGE = "Élève introuvable."
DUPLICATE_MESSAGE = "Un élève avec ce matricule et cet email existe déjà."


@contextmanager
def datastore_errors(db: Session, action: str):
    """
    Traduit les erreurs SQLAlchemy en erreurs métier et annule la transaction.
    IntegrityError ne peut venir que de la contrainte d'unicité sur (student_id, email).
    """
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Doublon détecté lors de %s : %s", action, exc.orig)
        raise ConflictError(DUPLICATE_MESSAGE) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Erreur base de données lors de %s : %s", action, exc)
        raise UpstreamError(f"Erreur lors de {action}.", detail=str(exc)) from exc


def _clean(fields: Mapping[str, Optional[str]]) -> dict:
    """Retire les espaces superflus ; une chaîne vide équivaut à un champ absent."""
    cleaned = {}
    for field, value in fields.items():
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == "":
            continue
        cleaned[field] = value
    return cleaned


def _parse(schema, values: dict):
    try:
        return schema.model_validate(values)
    except PydanticValidationError as exc:
        invalid = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        logger.warning("Champs invalides : %s", invalid)
        raise ValidationError(
            f"Champs invalides : {', '.join(invalid)}", invalid_fields=invalid
        ) from exc


def _encrypt_identity(columns: dict, cipher: FieldCipher) -> dict:
    encrypted = dict(columns)
    for column in DETERMINISTIC_COLUMNS:
        if column in encrypted:
            encrypted[column] = cipher.encrypt(encrypted[column])
    for column in RANDOMIZED_COLUMNS:
        if column in encrypted:
            encrypted[column] = cipher.encrypt_randomized(encrypted[column])
    return encrypted


def to_response(student: Student, cipher: FieldCipher) -> StudentResponse:
    """Remet la ligne au format API puis déchiffre les champs d'identité."""
    data = to_api_shape(student)
    decrypted = {
        "name": cipher.decrypt_randomized(data["name"]),
        "studentId": cipher.decrypt(data["studentId"]),
        "email": cipher.decrypt(data["email"]),
    }
    for field, result in decrypted.items():
        if not result.ok:
            logger.warning(
                "Champ %s illisible pour l'élève %s : clé différente ou donnée corrompue",
                field, data["id"],
            )
        data[field] = result.value
    return StudentResponse.model_validate(data)


def validate_new_student(fields: Mapping[str, Optional[str]], has_image: bool) -> StudentCreate:
    """
    Vérifie la présence de tous les champs obligatoires puis leur format.
    Lève ValidationError en listant les champs manquants ou invalides.
    """
    values = _clean(fields)
    missing = [field for field in REQUIRED_FIELDS if field not in values]
    if not has_image:
        missing.append("image")
    if missing:
        logger.warning("Champs obligatoires manquants : %s", missing)
        raise ValidationError(
            f"Champs obligatoires manquants : {', '.join(missing)}", missing_fields=missing
        )
    return _parse(StudentCreate, values)


def create_student(
    db: Session, cipher: FieldCipher, data: StudentCreate, asset: UploadedAsset
) -> StudentResponse:
    """Insère un élève avec son image déjà publiée. Lève ConflictError si doublon."""
    columns = _encrypt_identity(to_store_shape(data.model_dump(by_alias=True)), cipher)
    student = Student(**columns, image=asset.url, image_asset_id=asset.asset_id)

    with datastore_errors(db, "l'ajout de l'élève"):
        db.add(student)
        db.commit()
        db.refresh(student)

    logger.info("Élève ajouté : %s", student.id)
    return to_response(student, cipher)


def add_student(
    db: Session,
    cipher: FieldCipher,
    media_host: MediaHost,
    fields: Mapping[str, Optional[str]],
    image: Optional[UploadFile],
) -> StudentResponse:
    """
    Ajout complet : validation, publication de l'image puis insertion.
    Si l'insertion échoue, l'image publiée est supprimée au mieux.
    """
    has_image = image is not None and bool(image.filename)
    data = validate_new_student(fields, has_image=has_image)
    asset = publish_image(image, media_host)
    try:
        return create_student(db, cipher, data, asset)
    except StudentRecordError:
        _discard_asset(media_host, asset)
        raise


def _discard_asset(media_host: MediaHost, asset: UploadedAsset) -> None:
    try:
        media_host.delete(asset.asset_id)
    except UpstreamError:
        logger.warning("Image orpheline non supprimée : %s", asset.asset_id)


def update_student(
    db: Session,
    cipher: FieldCipher,
    student_id: uuid.UUID,
    fields: Mapping[str, Optional[str]],
) -> StudentResponse:
    """
    Met à jour les champs fournis d'un élève. Les champs absents ne sont pas modifiés.
    updated_at est toujours rafraîchi.
    """
    data = _parse(StudentUpdate, _clean(fields))
    changes = _encrypt_identity(
        to_store_shape(data.model_dump(by_alias=True, exclude_none=True)), cipher
    )
    # Une URL fournie par le client ne correspond plus à l'asset publié
    if "image" in changes:
        changes["image_asset_id"] = None

    with datastore_errors(db, "la mise à jour de l'élève"):
        student = db.get(Student, student_id)
        if student is None:
            logger.warning("Élève introuvable pour mise à jour : %s", student_id)
            raise NotFoundError(NOT_FOUND_MESSAGE)

        for column, value in changes.items():
            setattr(student, column, value)
        student.updated_at = utcnow()

        db.commit()
        db.refresh(student)

    logger.info("Élève mis à jour : %s (%s)", student_id, ", ".join(sorted(changes)) or "aucun champ")
    return to_response(student, cipher)


def delete_student(db: Session, student_id: uuid.UUID) -> None:
    """Supprime définitivement un élève. Lève NotFoundError si inexistant."""
    with datastore_errors(db, "la suppression de l'élève"):
        student = db.get(Student, student_id)
        if student is None:
            logger.warning("Élève introuvable pour suppression : %s", student_id)
            raise NotFoundError(NOT_FOUND_MESSAGE)
        db.delete(student)
        db.commit()

    logger.info("Élève supprimé : %s", student_id)


def list_students(db: Session, cipher: FieldCipher) -> list[StudentResponse]:
    """Retourne tous les élèves, du plus récent au plus ancien."""
    with datastore_errors(db, "la lecture des élèves"):
        students = db.execute(
            select(Student).order_by(Student.created_at.desc())
        ).scalars().all()
    return [to_response(s, cipher) for s in students]


def get_student(db: Session, cipher: FieldCipher, student_id: uuid.UUID) -> StudentResponse:
    with datastore_errors(db, "la lecture de l'élève"):
        student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError(NOT_FOUND_MESSAGE)
    return to_response(student, cipher)
