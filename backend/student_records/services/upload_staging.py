"""
Fichiers temporaires des images reçues avant leur publication chez l'hébergeur média.
Le fichier est toujours retiré après l'envoi ; le scheduler balaie les restes éventuels.
"""

import logging
import time
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from student_records.config import settings
from student_records.errors import ValidationError
from student_records.services.media_host import MediaHost, UploadedAsset

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def stage_image(
    upload: UploadFile,
    upload_dir: Optional[Path] = None,
    max_bytes: Optional[int] = None,
) -> Path:
    """
    Copie l'image reçue dans le dossier temporaire sous un nom UUID.
    Lève ValidationError si ce n'est pas une image ou si elle dépasse la taille maximale.
    """
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise ValidationError(
            "Format invalide. Seules les images sont acceptées.", invalid_fields=["image"]
        )

    upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    if max_bytes is None:
        max_bytes = settings.MAX_IMAGE_SIZE_MB * 1024 * 1024

    suffix = Path(upload.filename or "").suffix.lower()
    path = upload_dir / f"{uuid.uuid4()}{suffix}"

    written = 0
    with path.open("wb") as out:
        while True:
            chunk = upload.file.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                break
            out.write(chunk)

    if written > max_bytes:
        discard_staged(path)
        raise ValidationError(
            f"Image trop volumineuse. Taille maximale : {max_bytes // (1024 * 1024)} Mo.",
            invalid_fields=["image"],
        )
    if written == 0:
        discard_staged(path)
        raise ValidationError("L'image est vide.", invalid_fields=["image"])

    return path


def discard_staged(path: Path) -> None:
    """Suppression au mieux : un échec est journalisé, jamais propagé."""
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Impossible de supprimer le fichier temporaire %s : %s", path, exc)


def publish_image(upload: UploadFile, media_host: MediaHost) -> UploadedAsset:
    """Met l'image en attente, la publie chez l'hébergeur puis retire le fichier temporaire."""
    path = stage_image(upload)
    try:
        return media_host.upload(path, upload.content_type)
    finally:
        discard_staged(path)


def sweep_stale_uploads(max_age: timedelta, upload_dir: Optional[Path] = None) -> int:
    """Supprime les fichiers temporaires plus anciens que max_age. Retourne le nombre supprimé."""
    upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
    if not upload_dir.is_dir():
        return 0

    cutoff = time.time() - max_age.total_seconds()
    removed = 0
    for path in upload_dir.iterdir():
        # Un envoi en cours peut retirer son fichier entre le listage et la suppression
        try:
            if not path.is_file() or path.stat().st_mtime >= cutoff:
                continue
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as exc:
            logger.warning("Impossible de supprimer le fichier temporaire %s : %s", path, exc)
            continue
        removed += 1
    return removed
