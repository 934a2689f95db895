"""
Chiffrement symétrique des champs d'identité (nom, matricule, email).

AES-256-CBC avec un IV fixe : le même texte donne toujours le même chiffré,
ce qui permet la recherche par égalité (login) et la contrainte d'unicité
directement sur les colonnes chiffrées. Sortie en hexadécimal minuscule.

Les champs qui n'ont besoin que de confidentialité passent par
encrypt_randomized() : IV aléatoire préfixé au chiffré.
"""

import hashlib
import logging
import os
from functools import lru_cache
from typing import NamedTuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from student_records.config import settings

logger = logging.getLogger(__name__)

KEY_SIZE = 32
BLOCK_SIZE = 16
FIXED_IV = bytes(BLOCK_SIZE)


class DecryptedField(NamedTuple):
    """
    Résultat d'un déchiffrement.
    ok=False : le chiffré était illisible (clé différente ou donnée corrompue),
    value contient alors l'entrée brute inchangée.
    """
    value: str
    ok: bool


def derive_key(secret: str) -> bytes:
    """SHA-256 du secret configuré, tronqué à la taille de clé AES-256."""
    return hashlib.sha256(secret.encode("utf-8")).digest()[:KEY_SIZE]


class FieldCipher:
    """Chiffre et déchiffre des chaînes courtes avec une clé fixée à la construction."""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ValueError(f"La clé AES-256 doit faire {KEY_SIZE} octets.")
        self._key = key

    @classmethod
    def from_secret(cls, secret: str) -> "FieldCipher":
        return cls(derive_key(secret))

    def encrypt(self, plaintext: str) -> str:
        """Chiffrement déterministe : IV fixe, PKCS7, hexadécimal."""
        return self._encrypt_bytes(plaintext.encode("utf-8"), FIXED_IV).hex()

    def decrypt(self, ciphertext: str) -> DecryptedField:
        """Inverse de encrypt(). Ne lève jamais d'exception sur une entrée invalide."""
        try:
            raw = bytes.fromhex(ciphertext)
            return DecryptedField(self._decrypt_bytes(raw, FIXED_IV), True)
        except ValueError as exc:
            logger.warning("Déchiffrement impossible, valeur brute conservée : %s", exc)
            return DecryptedField(ciphertext, False)

    def encrypt_randomized(self, plaintext: str) -> str:
        """Chiffrement non déterministe : IV aléatoire en tête du chiffré."""
        iv = os.urandom(BLOCK_SIZE)
        return (iv + self._encrypt_bytes(plaintext.encode("utf-8"), iv)).hex()

    def decrypt_randomized(self, ciphertext: str) -> DecryptedField:
        try:
            raw = bytes.fromhex(ciphertext)
            if len(raw) < 2 * BLOCK_SIZE:
                raise ValueError("chiffré trop court")
            iv, body = raw[:BLOCK_SIZE], raw[BLOCK_SIZE:]
            return DecryptedField(self._decrypt_bytes(body, iv), True)
        except ValueError as exc:
            logger.warning("Déchiffrement impossible, valeur brute conservée : %s", exc)
            return DecryptedField(ciphertext, False)

    def _encrypt_bytes(self, data: bytes, iv: bytes) -> bytes:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(data) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def _decrypt_bytes(self, data: bytes, iv: bytes) -> str:
        # ValueError couvre longueur invalide, padding invalide et UTF-8 invalide
        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(data) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")


@lru_cache
def get_cipher() -> FieldCipher:
    """Dépendance FastAPI: clé dérivée une fois pour toute la durée du processus."""
    return FieldCipher.from_secret(settings.ENCRYPTION_SECRET)
