"""
Tests du service élèves sur une base SQLite en mémoire.
Vérifient le chiffrement au repos, l'unicité, la mise à jour partielle et l'ordre de listage.
"""

import io
import uuid
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from starlette.datastructures import Headers, UploadFile

from student_records.errors import ConflictError, NotFoundError, UpstreamError, ValidationError
from student_records.models.student import Student
from student_records.schemas.student import StudentCreate
from student_records.services.media_host import UploadedAsset
from student_records.services.student_service import (
    add_student,
    create_student,
    delete_student,
    get_student,
    list_students,
    update_student,
    validate_new_student,
)


# --- Helpers ---

def make_fields(**overrides):
    fields = {
        "name": "Jean Dupont",
        "studentId": "S1",
        "email": "a@b.com",
        "course": "Informatique",
        "year": "2",
    }
    fields.update(overrides)
    return fields


def make_image(content=b"\x89PNG fake", filename="photo.png", content_type="image/png"):
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def make_asset(key="data_entry_app/photo.png"):
    return UploadedAsset(url=f"https://media.test/{key}", asset_id=key)


def create(db, cipher, **overrides):
    data = StudentCreate.model_validate(make_fields(**overrides))
    return create_student(db, cipher, data, make_asset())


# --- validate_new_student ---

def test_validation_complete():
    data = validate_new_student(make_fields(name="  Jean  "), has_image=True)
    assert data.name == "Jean"
    assert data.student_id == "S1"
    assert data.year == 2


def test_validation_annee_absente():
    fields = make_fields()
    del fields["year"]
    with pytest.raises(ValidationError) as exc_info:
        validate_new_student(fields, has_image=True)
    assert exc_info.value.missing_fields == ["year"]


def test_validation_champs_vides_et_image_absente():
    with pytest.raises(ValidationError) as exc_info:
        validate_new_student(make_fields(name="   ", course=""), has_image=False)
    assert exc_info.value.missing_fields == ["name", "course", "image"]
    assert "name" in exc_info.value.message


def test_validation_annee_non_numerique():
    with pytest.raises(ValidationError) as exc_info:
        validate_new_student(make_fields(year="deuxième"), has_image=True)
    assert exc_info.value.invalid_fields == ["year"]


def test_validation_email_invalide():
    with pytest.raises(ValidationError) as exc_info:
        validate_new_student(make_fields(email="pas-un-email"), has_image=True)
    assert exc_info.value.invalid_fields == ["email"]


def test_validation_email_avec_nom_affiche_refuse():
    with pytest.raises(ValidationError) as exc_info:
        validate_new_student(make_fields(email="Mallory <a@b.com>"), has_image=True)
    assert exc_info.value.invalid_fields == ["email"]


def test_validation_email_conserve_la_casse():
    data = validate_new_student(make_fields(email=" Jean.Dupont@Ecole.BE "), has_image=True)
    assert data.email == "Jean.Dupont@Ecole.BE"


def test_validation_email_domaine_local_accepte():
    data = validate_new_student(make_fields(email="eleve@ecole.local"), has_image=True)
    assert data.email == "eleve@ecole.local"


# --- create_student ---

def test_creation_chiffre_les_champs_d_identite(db_session, cipher):
    created = create(db_session, cipher)

    assert created.name == "Jean Dupont"
    assert created.student_id == "S1"
    assert created.email == "a@b.com"
    assert created.year == 2
    assert created.image == "https://media.test/data_entry_app/photo.png"
    assert created.image_asset_id == "data_entry_app/photo.png"
    assert created.created_at is not None

    row = db_session.get(Student, created.id)
    assert row.student_id == cipher.encrypt("S1")
    assert row.email == cipher.encrypt("a@b.com")
    assert row.name != "Jean Dupont"
    assert cipher.decrypt_randomized(row.name).value == "Jean Dupont"
    assert row.course == "Informatique"


def test_creation_doublon_matricule_email(db_session, cipher):
    create(db_session, cipher)
    with pytest.raises(ConflictError):
        create(db_session, cipher, name="Autre Nom", course="Maths", year="3")
    assert len(list_students(db_session, cipher)) == 1


def test_email_stocke_tel_que_saisi(db_session, cipher, media_host):
    created = add_student(
        db_session, cipher, media_host, make_fields(email="Jean.Dupont@Ecole.BE"), make_image()
    )
    assert created.email == "Jean.Dupont@Ecole.BE"
    assert db_session.get(Student, created.id).email == cipher.encrypt("Jean.Dupont@Ecole.BE")


def test_email_avec_nom_affiche_rien_n_est_persiste(db_session, cipher, media_host):
    with pytest.raises(ValidationError):
        add_student(
            db_session, cipher, media_host, make_fields(email="Mallory <a@b.com>"), make_image()
        )
    assert media_host.uploads == []
    assert list_students(db_session, cipher) == []


def test_meme_matricule_email_different_accepte(db_session, cipher):
    create(db_session, cipher)
    create(db_session, cipher, email="c@d.com")
    assert len(list_students(db_session, cipher)) == 2


# --- add_student ---

def test_ajout_complet_publie_l_image(db_session, cipher, media_host, upload_dir):
    created = add_student(db_session, cipher, media_host, make_fields(), make_image())

    assert len(media_host.uploads) == 1
    asset_id, content_type = media_host.uploads[0]
    assert created.image_asset_id == asset_id
    assert content_type == "image/png"
    # Le fichier temporaire est retiré après l'envoi
    assert list(upload_dir.iterdir()) == []


def test_ajout_sans_annee_ne_persiste_rien(db_session, cipher, media_host):
    fields = make_fields()
    del fields["year"]
    with pytest.raises(ValidationError) as exc_info:
        add_student(db_session, cipher, media_host, fields, make_image())

    assert "year" in exc_info.value.missing_fields
    assert media_host.uploads == []
    assert list_students(db_session, cipher) == []


def test_ajout_sans_image(db_session, cipher, media_host):
    with pytest.raises(ValidationError) as exc_info:
        add_student(db_session, cipher, media_host, make_fields(), None)
    assert exc_info.value.missing_fields == ["image"]


def test_ajout_doublon_supprime_l_image_orpheline(db_session, cipher, media_host):
    add_student(db_session, cipher, media_host, make_fields(), make_image())
    with pytest.raises(ConflictError):
        add_student(db_session, cipher, media_host, make_fields(name="Autre"), make_image())

    assert len(media_host.uploads) == 2
    assert media_host.deleted == [media_host.uploads[1][0]]


def test_ajout_echec_hebergeur(db_session, cipher, failing_media_host, upload_dir):
    with pytest.raises(UpstreamError):
        add_student(db_session, cipher, failing_media_host, make_fields(), make_image())
    assert list(upload_dir.iterdir()) == []
    assert list_students(db_session, cipher) == []


# --- update_student ---

def test_mise_a_jour_partielle(db_session, cipher):
    created = create(db_session, cipher)
    # Date d'origine dans le passé pour constater le rafraîchissement
    row = db_session.get(Student, created.id)
    row.updated_at = datetime.now() - timedelta(days=1)
    db_session.commit()
    before = get_student(db_session, cipher, created.id)

    updated = update_student(db_session, cipher, created.id, {"course": "Mathématiques"})

    assert updated.course == "Mathématiques"
    assert updated.name == created.name
    assert updated.student_id == created.student_id
    assert updated.email == created.email
    assert updated.image == created.image
    assert updated.updated_at > before.updated_at


def test_mise_a_jour_rechiffre_les_champs_fournis(db_session, cipher):
    created = create(db_session, cipher)
    updated = update_student(
        db_session, cipher, created.id, {"studentId": "S2", "email": "", "year": "4"}
    )

    assert updated.student_id == "S2"
    assert updated.email == "a@b.com"
    assert updated.year == 4
    assert db_session.get(Student, created.id).student_id == cipher.encrypt("S2")


def test_mise_a_jour_image(db_session, cipher):
    created = create(db_session, cipher)
    updated = update_student(db_session, cipher, created.id, {"image": "https://media.test/b.png"})
    assert updated.image == "https://media.test/b.png"
    assert created.image_asset_id is not None
    assert updated.image_asset_id is None


def test_mise_a_jour_sans_image_conserve_l_asset(db_session, cipher):
    created = create(db_session, cipher)
    updated = update_student(db_session, cipher, created.id, {"course": "Maths"})
    assert updated.image_asset_id == created.image_asset_id


def test_mise_a_jour_introuvable(db_session, cipher):
    with pytest.raises(NotFoundError):
        update_student(db_session, cipher, uuid.uuid4(), {"course": "Maths"})


def test_mise_a_jour_doublon(db_session, cipher):
    create(db_session, cipher)
    other = create(db_session, cipher, studentId="S2")
    with pytest.raises(ConflictError):
        update_student(db_session, cipher, other.id, {"studentId": "S1"})
    assert get_student(db_session, cipher, other.id).student_id == "S2"


def test_mise_a_jour_annee_invalide(db_session, cipher):
    created = create(db_session, cipher)
    with pytest.raises(ValidationError) as exc_info:
        update_student(db_session, cipher, created.id, {"year": "abc"})
    assert exc_info.value.invalid_fields == ["year"]


# --- delete / get / list ---

def test_suppression(db_session, cipher):
    created = create(db_session, cipher)
    delete_student(db_session, created.id)
    with pytest.raises(NotFoundError):
        get_student(db_session, cipher, created.id)


def test_suppression_introuvable(db_session):
    with pytest.raises(NotFoundError):
        delete_student(db_session, uuid.uuid4())


def test_liste_du_plus_recent_au_plus_ancien(db_session, cipher):
    base = datetime(2025, 1, 1, 12, 0, 0)
    for offset, sid in enumerate(["S1", "S2", "S3"]):
        student = create(db_session, cipher, studentId=sid)
        row = db_session.get(Student, student.id)
        row.created_at = base + timedelta(minutes=offset)
    db_session.commit()

    students = list_students(db_session, cipher)
    assert [s.student_id for s in students] == ["S3", "S2", "S1"]


def test_lecture_champ_illisible_retourne_le_chiffre(db_session, cipher):
    created = create(db_session, cipher)
    row = db_session.get(Student, created.id)
    row.email = "deadbeef"
    db_session.commit()

    assert get_student(db_session, cipher, created.id).email == "deadbeef"


def test_erreur_base_de_donnees_remontee():
    db = MagicMock()
    db.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
    with pytest.raises(UpstreamError) as exc_info:
        list_students(db, MagicMock())
    assert "connection refused" in exc_info.value.detail
    db.rollback.assert_called_once()
