"""
Artifact blob storage for submissions.

Files go to Django's default storage; a Submission keeps only the returned
references. Storage backend and location are configured in settings.
"""

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

from core.exceptions import NotFoundError, ValidationError

ARTIFACT_PREFIX = "artifacts"
MAX_ARTIFACT_BYTES = 25 * 1024 * 1024


def artifact_prefix(work_item_id):
    return f"{ARTIFACT_PREFIX}/{work_item_id}/"


def save_artifact(work_item_id, file):
    """Store an uploaded file and return its reference."""
    if not file:
        raise ValidationError("File is required")
    if file.size is not None and file.size > MAX_ARTIFACT_BYTES:
        raise ValidationError(
            "Artifact is too large", {"maxBytes": MAX_ARTIFACT_BYTES}
        )
    name = f"{artifact_prefix(work_item_id)}{file.name}"
    return default_storage.save(name, ContentFile(file.read()))


def open_artifact(work_item_id, ref):
    """Open a stored artifact belonging to work_item_id for reading."""
    if not ref or not ref.startswith(artifact_prefix(work_item_id)) or ".." in ref:
        raise NotFoundError(f"Artifact {ref} does not exist")
    if not default_storage.exists(ref):
        raise NotFoundError(f"Artifact {ref} does not exist")
    return default_storage.open(ref, "rb")


def delete_artifact(ref):
    default_storage.delete(ref)
