"""KYC router — verification applications, document intake and review."""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from rwa_platform.database import get_db
from rwa_platform.models.kyc import KycDocument, KycSubmission
from rwa_platform.models.user import User
from rwa_platform.schemas.kyc import (
    KycDocumentResponse,
    KycDocumentUpload,
    KycStatusResponse,
    KycStatusUpdate,
    KycSubmissionResponse,
    KycSubmitRequest,
)
from rwa_platform.middleware.auth import get_current_user, require_kyc_reviewer
from rwa_platform.services import kyc_service

router = APIRouter(prefix="/api/kyc", tags=["kyc"])


def _document_to_response(d: KycDocument) -> KycDocumentResponse:
    return KycDocumentResponse(
        id=d.id,
        document_type=d.document_type,
        file_name=d.file_name,
        file_size=d.file_size,
        mime_type=d.mime_type,
        uploaded_at=d.uploaded_at.isoformat(),
    )


def _submission_to_response(s: KycSubmission) -> KycSubmissionResponse:
    return KycSubmissionResponse(
        id=s.id,
        document_type=s.document_type,
        document_number=s.document_number,
        issuing_country=s.issuing_country,
        expiry_date=s.expiry_date,
        status=s.status,
        submitted_at=s.submitted_at.isoformat(),
        reviewed_at=s.reviewed_at.isoformat() if s.reviewed_at else None,
        review_notes=s.review_notes,
        rejection_reason=s.rejection_reason,
        documents=[_document_to_response(d) for d in s.documents],
    )


@router.post("", response_model=KycSubmissionResponse, status_code=201)
def submit(
    req: KycSubmitRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Open a KYC application for the current user."""
    submission = kyc_service.submit_kyc(
        db,
        current_user.id,
        document_type=req.document_type,
        document_number=req.document_number,
        issuing_country=req.issuing_country,
        personal_info=req.personal_info.model_dump(),
        documents=[d.model_dump() for d in req.documents],
        expiry_date=req.expiry_date,
    )
    return _submission_to_response(submission)


@router.get("", response_model=KycStatusResponse)
def my_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Current user's KYC flag and every application they have made."""
    submissions = kyc_service.list_submissions(db, current_user.id)
    return KycStatusResponse(
        kyc_status=current_user.kyc_status,
        submissions=[_submission_to_response(s) for s in submissions],
    )


@router.put("/{submission_id}/status", response_model=KycSubmissionResponse)
def update_status(
    submission_id: str,
    req: KycStatusUpdate,
    db: Session = Depends(get_db),
    reviewer: User = Depends(require_kyc_reviewer),
):
    """Record a review decision (reviewers only)."""
    submission = kyc_service.update_status(
        db,
        submission_id,
        req.status,
        reviewer_id=reviewer.id,
        review_notes=req.review_notes,
        rejection_reason=req.rejection_reason,
    )
    return _submission_to_response(submission)


@router.post("/{submission_id}/documents", response_model=KycDocumentResponse, status_code=201)
def upload_document(
    submission_id: str,
    req: KycDocumentUpload,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    document = kyc_service.upload_document(db, current_user.id, submission_id, req.model_dump())
    return _document_to_response(document)


@router.get("/{submission_id}/documents", response_model=list[KycDocumentResponse])
def list_documents(
    submission_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [_document_to_response(d) for d in kyc_service.list_documents(db, current_user.id, submission_id)]


@router.delete("/documents/{document_id}", status_code=204)
def delete_document(
    document_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    kyc_service.delete_document(db, current_user.id, document_id)
    return Response(status_code=204)
