# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata.

from student_records.models.student import Student  # noqa: F401
