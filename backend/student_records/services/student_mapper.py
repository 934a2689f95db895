"""
Correspondance entre les colonnes de la table students et les champs exposés par l'API.
Transformation purement structurelle : ni validation ni chiffrement ici.
"""

from typing import Any, Mapping

COLUMN_TO_FIELD = {
    "id": "id",
    "name": "name",
    "student_id": "studentId",
    "email": "email",
    "course": "course",
    "year": "year",
    "image": "image",
    "image_asset_id": "imageAssetId",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}

FIELD_TO_COLUMN = {field: column for column, field in COLUMN_TO_FIELD.items()}


def to_api_shape(row: Any) -> dict:
    """
    Renomme les colonnes d'une ligne (objet ORM ou mapping) vers les noms de l'API.
    Les champs d'identité sont repris tels quels, chiffrés ou non selon l'appelant.
    """
    if isinstance(row, Mapping):
        return {field: row.get(column) for column, field in COLUMN_TO_FIELD.items()}
    return {field: getattr(row, column, None) for column, field in COLUMN_TO_FIELD.items()}


def to_store_shape(payload: Mapping[str, Any]) -> dict:
    """Sens inverse : ne garde que les champs connus effectivement fournis (mise à jour partielle)."""
    return {
        FIELD_TO_COLUMN[field]: value
        for field, value in payload.items()
        if field in FIELD_TO_COLUMN and value is not None
    }
