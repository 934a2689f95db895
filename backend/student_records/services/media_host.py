"""
Hébergeur média externe pour les photos des élèves (stockage objet compatible S3 / MinIO).
Le service élève ne dépend que de l'interface MediaHost : upload() et delete().
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import NamedTuple, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from student_records.config import settings
from student_records.errors import UpstreamError

logger = logging.getLogger(__name__)


class UploadedAsset(NamedTuple):
    url: str
    asset_id: str


class MediaHost(Protocol):
    def upload(self, path: Path, content_type: str) -> UploadedAsset:
        ...

    def delete(self, asset_id: str) -> None:
        ...


class S3MediaHost:
    """
    Publie les images dans un bucket S3 sous le préfixe `folder`.
    L'identifiant d'asset est la clé de l'objet.
    """

    def __init__(
        self,
        bucket: str,
        region: str,
        folder: str,
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
        access_key_id: str = "",
        secret_access_key: str = "",
        timeout: int = 60,
    ):
        self._bucket = bucket
        self._region = region
        self._folder = folder.strip("/")
        self._endpoint_url = endpoint_url
        self._public_base_url = public_base_url
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._timeout = timeout
        self._client = None

    def _get_client(self):
        """Initialisation paresseuse du client S3."""
        if self._client is None:
            config = Config(
                connect_timeout=self._timeout,
                read_timeout=self._timeout,
                retries={"max_attempts": 3},
            )
            kwargs = {"region_name": self._region, "config": config}
            if self._endpoint_url:
                kwargs["endpoint_url"] = self._endpoint_url
            # Sans identifiants explicites, boto3 utilise la chaîne standard (rôle IAM, profil...)
            if self._access_key_id and self._secret_access_key:
                kwargs["aws_access_key_id"] = self._access_key_id
                kwargs["aws_secret_access_key"] = self._secret_access_key
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def object_key(self, path: Path) -> str:
        return f"{self._folder}/{path.name}" if self._folder else path.name

    def public_url(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{key}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    def upload(self, path: Path, content_type: str) -> UploadedAsset:
        key = self.object_key(path)
        try:
            self._get_client().upload_file(
                str(path), self._bucket, key, ExtraArgs={"ContentType": content_type}
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Échec de l'envoi de %s vers le bucket %s : %s", key, self._bucket, exc)
            raise UpstreamError("Échec de l'envoi de l'image.", detail=str(exc)) from exc

        logger.info("Image publiée : %s", key)
        return UploadedAsset(url=self.public_url(key), asset_id=key)

    def delete(self, asset_id: str) -> None:
        try:
            self._get_client().delete_object(Bucket=self._bucket, Key=asset_id)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Échec de la suppression de %s : %s", asset_id, exc)
            raise UpstreamError("Échec de la suppression de l'image.", detail=str(exc)) from exc
        logger.info("Image supprimée : %s", asset_id)


@lru_cache
def get_media_host() -> MediaHost:
    """Dépendance FastAPI: remplacée par un faux hébergeur dans les tests."""
    return S3MediaHost(
        bucket=settings.MEDIA_BUCKET,
        region=settings.MEDIA_REGION,
        folder=settings.MEDIA_FOLDER,
        endpoint_url=settings.MEDIA_ENDPOINT_URL,
        public_base_url=settings.MEDIA_PUBLIC_BASE_URL,
        access_key_id=settings.MEDIA_ACCESS_KEY_ID,
        secret_access_key=settings.MEDIA_SECRET_ACCESS_KEY,
        timeout=settings.MEDIA_TIMEOUT_SECONDS,
    )
