"""KYC service — identity verification applications, documents and review."""

import base64
import binascii
import json
import logging
import re
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from rwa_platform.config import settings
from rwa_platform.database import unit_of_work
from rwa_platform.errors import ConflictError, InvalidArgumentError, NotFoundError
from rwa_platform.models.kyc import KycDocument, KycSubmission
from rwa_platform.services import user_service

logger = logging.getLogger(__name__)

ID_DOCUMENT_TYPES = ("passport", "national_id", "drivers_license")
FILE_TYPES = ("document_front", "document_back", "selfie", "proof_of_address")
STATUSES = ("pending", "under_review", "approved", "rejected", "requires_resubmission")
# A user may only have one of these open at a time
ACTIVE_STATUSES = ("pending", "under_review", "approved")
PERSONAL_INFO_FIELDS = (
    "first_name",
    "last_name",
    "date_of_birth",
    "nationality",
    "address",
    "city",
    "postal_code",
    "country",
)

_MIME_TYPE = re.compile(r"^(image/(jpeg|jpg|png|gif|webp)|application/pdf)$")


def _require_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{field} is required")
    return value.strip()


def _user_kyc_status(submission_status: str) -> str:
    """Collapse a submission status onto the user's pending/approved/rejected flag."""
    if submission_status in ("approved", "rejected"):
        return submission_status
    return "pending"


def _decode_document(doc: dict) -> KycDocument:
    document_type = doc.get("document_type")
    if document_type not in FILE_TYPES:
        raise InvalidArgumentError(
            f"Invalid document type: {document_type!r}", {"allowed": list(FILE_TYPES)}
        )
    file_name = _require_text(doc.get("file_name"), "file_name")
    mime_type = doc.get("mime_type") or ""
    if not _MIME_TYPE.match(mime_type):
        raise InvalidArgumentError(f"Unsupported file type: {mime_type!r}")

    try:
        content = base64.b64decode(doc.get("base64_data") or "", validate=True)
    except (binascii.Error, ValueError):
        raise InvalidArgumentError(f"{file_name} is not valid base64 data")
    if not content:
        raise InvalidArgumentError(f"{file_name} is empty")
    if len(content) > settings.KYC_MAX_DOCUMENT_BYTES:
        raise InvalidArgumentError(
            f"{file_name} is too large", {"max_bytes": settings.KYC_MAX_DOCUMENT_BYTES}
        )

    return KycDocument(
        id=str(uuid.uuid4()),
        document_type=document_type,
        file_name=file_name,
        file_size=len(content),
        mime_type=mime_type,
        content=content,
    )


def submit_kyc(
    db: Session,
    user_id: str,
    document_type: str,
    document_number: str,
    issuing_country: str,
    personal_info: dict,
    documents: list[dict],
    expiry_date: Optional[date] = None,
) -> KycSubmission:
    """Open a KYC application with its identity documents.

    Raises:
        InvalidArgumentError: Bad document type, missing personal details or an
            unreadable document.
        NotFoundError: The user does not exist.
        ConflictError: The user already has a pending, under-review or approved
            application.
    """
    if document_type not in ID_DOCUMENT_TYPES:
        raise InvalidArgumentError(
            f"Invalid identity document type: {document_type!r}", {"allowed": list(ID_DOCUMENT_TYPES)}
        )
    document_number = _require_text(document_number, "document_number")
    issuing_country = _require_text(issuing_country, "issuing_country")
    info = {field: _require_text((personal_info or {}).get(field), field) for field in PERSONAL_INFO_FIELDS}
    if not documents:
        raise InvalidArgumentError("At least one document is required")
    records = [_decode_document(doc) for doc in documents]

    with unit_of_work(db):
        user = user_service.get_user(db, user_id)
        active = (
            db.query(KycSubmission)
            .filter(KycSubmission.user_id == user_id, KycSubmission.status.in_(ACTIVE_STATUSES))
            .first()
        )
        if active:
            raise ConflictError(
                "User already has an active KYC submission",
                {"submission_id": active.id, "status": active.status},
            )

        submission = KycSubmission(
            id=str(uuid.uuid4()),
            user_id=user_id,
            submission_type="individual",
            document_type=document_type,
            document_number=document_number,
            issuing_country=issuing_country,
            expiry_date=expiry_date,
            personal_info=json.dumps(info),
            status="pending",
        )
        submission.documents = records
        db.add(submission)
        user.kyc_status = "pending"

    db.refresh(submission)
    logger.info("KYC submission %s opened for user %s (%d documents)", submission.id, user_id, len(records))
    return submission


def list_submissions(db: Session, user_id: str) -> list[KycSubmission]:
    """All of a user's applications, newest first."""
    return (
        db.query(KycSubmission)
        .filter(KycSubmission.user_id == user_id)
        .order_by(KycSubmission.created_at.desc())
        .all()
    )


def get_submission(db: Session, submission_id: str, user_id: Optional[str] = None) -> KycSubmission:
    """Get an application; with ``user_id`` set, other users' applications are reported as missing."""
    query = db.query(KycSubmission).filter(KycSubmission.id == submission_id)
    if user_id is not None:
        query = query.filter(KycSubmission.user_id == user_id)
    submission = query.first()
    if not submission:
        raise NotFoundError("KYC submission not found", {"submission_id": submission_id})
    return submission


def update_status(
    db: Session,
    submission_id: str,
    status: str,
    reviewer_id: str,
    review_notes: Optional[str] = None,
    rejection_reason: Optional[str] = None,
) -> KycSubmission:
    """Record a review decision and mirror it onto the user's KYC flag."""
    if status not in STATUSES:
        raise InvalidArgumentError(f"Invalid KYC status: {status!r}", {"allowed": list(STATUSES)})

    with unit_of_work(db):
        submission = get_submission(db, submission_id)
        submission.status = status
        submission.reviewed_at = datetime.now(timezone.utc)
        submission.reviewed_by = reviewer_id
        submission.review_notes = review_notes
        submission.rejection_reason = rejection_reason if status == "rejected" else None
        user_service.get_user(db, submission.user_id).kyc_status = _user_kyc_status(status)

    db.refresh(submission)
    logger.info("KYC submission %s set to %s by %s", submission_id, status, reviewer_id)
    return submission


def upload_document(db: Session, user_id: str, submission_id: str, document: dict) -> KycDocument:
    """Attach a document to an open application, replacing any earlier one of the same type."""
    record = _decode_document(document)

    with unit_of_work(db):
        submission = get_submission(db, submission_id, user_id=user_id)
        if submission.status == "approved":
            raise ConflictError("Cannot upload documents to an approved submission")
        existing = (
            db.query(KycDocument)
            .filter(KycDocument.submission_id == submission_id, KycDocument.document_type == record.document_type)
            .first()
        )
        if existing:
            existing.file_name = record.file_name
            existing.file_size = record.file_size
            existing.mime_type = record.mime_type
            existing.content = record.content
            existing.uploaded_at = datetime.now(timezone.utc)
            record = existing
        else:
            record.submission_id = submission_id
            db.add(record)
        submission.updated_at = datetime.now(timezone.utc)

    db.refresh(record)
    return record


def list_documents(db: Session, user_id: str, submission_id: str) -> list[KycDocument]:
    get_submission(db, submission_id, user_id=user_id)
    return (
        db.query(KycDocument)
        .filter(KycDocument.submission_id == submission_id)
        .order_by(KycDocument.uploaded_at.desc())
        .all()
    )


def delete_document(db: Session, user_id: str, document_id: str) -> None:
    with unit_of_work(db):
        document = (
            db.query(KycDocument)
            .join(KycSubmission, KycDocument.submission_id == KycSubmission.id)
            .filter(KycDocument.id == document_id, KycSubmission.user_id == user_id)
            .first()
        )
        if not document:
            raise NotFoundError("Document not found", {"document_id": document_id})
        if document.submission.status == "approved":
            raise ConflictError("Cannot delete documents from an approved submission")
        document.submission.updated_at = datetime.now(timezone.utc)
        db.delete(document)
