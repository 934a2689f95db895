"""
Erreurs métier de l'API.
Chaque erreur porte son code HTTP ; main.py les convertit en réponse JSON.
"""

from typing import List, Optional


class StudentRecordError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_content(self) -> dict:
        return {"detail": self.message}


class ValidationError(StudentRecordError):
    """Entrée absente ou mal formée. Liste les champs fautifs."""

    status_code = 400

    def __init__(
        self,
        message: str,
        missing_fields: Optional[List[str]] = None,
        invalid_fields: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or []

    def to_content(self) -> dict:
        content = super().to_content()
        if self.missing_fields:
            content["missingFields"] = self.missing_fields
        if self.invalid_fields:
            content["invalidFields"] = self.invalid_fields
        return content


class AuthenticationError(StudentRecordError):
    status_code = 401


class NotFoundError(StudentRecordError):
    status_code = 404


class ConflictError(StudentRecordError):
    status_code = 409


class UpstreamError(StudentRecordError):
    """Échec de la base de données ou de l'hébergeur média."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail

    def to_content(self) -> dict:
        content = super().to_content()
        if self.detail:
            content["error"] = self.detail
        return content
