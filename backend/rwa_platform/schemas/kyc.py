"""KYC request/response schemas."""

from datetime import date
from typing import Optional

from pydantic import BaseModel


class PersonalInfo(BaseModel):
    first_name: str
    last_name: str
    date_of_birth: str
    nationality: str
    address: str
    city: str
    postal_code: str
    country: str


class KycDocumentUpload(BaseModel):
    document_type: str  # document_front | document_back | selfie | proof_of_address
    file_name: str
    mime_type: str
    base64_data: str


class KycSubmitRequest(BaseModel):
    document_type: str  # passport | national_id | drivers_license
    document_number: str
    issuing_country: str
    expiry_date: Optional[date] = None
    personal_info: PersonalInfo
    documents: list[KycDocumentUpload]


class KycStatusUpdate(BaseModel):
    status: str
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None


class KycDocumentResponse(BaseModel):
    id: str
    document_type: str
    file_name: str
    file_size: int
    mime_type: str
    uploaded_at: str


class KycSubmissionResponse(BaseModel):
    id: str
    document_type: str
    document_number: str
    issuing_country: str
    expiry_date: Optional[date]
    status: str
    submitted_at: str
    reviewed_at: Optional[str]
    review_notes: Optional[str]
    rejection_reason: Optional[str]
    documents: list[KycDocumentResponse]


class KycStatusResponse(BaseModel):
    kyc_status: str
    submissions: list[KycSubmissionResponse]
