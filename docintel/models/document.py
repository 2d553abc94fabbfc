from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class DocumentStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    READY = "ready"
    ERROR = "error"


# ready and error end a single attempt; retry re-enters at processing
ALLOWED_TRANSITIONS = {
    DocumentStatus.UPLOADING: {DocumentStatus.PROCESSING, DocumentStatus.ERROR},
    DocumentStatus.PROCESSING: {DocumentStatus.ANALYZING, DocumentStatus.ERROR},
    DocumentStatus.ANALYZING: {DocumentStatus.READY, DocumentStatus.ERROR},
    DocumentStatus.READY: {DocumentStatus.PROCESSING},
    DocumentStatus.ERROR: {DocumentStatus.PROCESSING},
}


class ExtractionMethod(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"
    IMAGE_OCR = "image-ocr"
    UNKNOWN = "unknown"


class DocumentType(str, Enum):
    REPORT = "report"
    LETTER = "letter"
    PRESENTATION = "presentation"
    SPREADSHEET = "spreadsheet"
    IMAGE = "image"
    ARTICLE = "article"
    POLICY = "policy"
    INVOICE = "invoice"
    RESEARCH = "research"
    MANUAL = "manual"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: Any) -> "DocumentType":
        """Map arbitrary input onto the enum, defaulting to UNKNOWN."""
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class EntityType(str, Enum):
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    DATE = "date"
    MONEY = "money"
    PERCENTAGE = "percentage"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any) -> "EntityType":
        if not isinstance(value, str):
            return cls.OTHER
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER


class FileMetadata(BaseModel):
    name: str
    mime_type: str = "application/octet-stream"
    size: int = 0
    extension: str = ""
    last_modified: Optional[datetime] = None


class ExtractionDetails(BaseModel):
    method: ExtractionMethod = ExtractionMethod.UNKNOWN
    word_count: int = 0
    character_count: int = 0
    page_count: Optional[int] = None
    language: Optional[str] = None
    ocr_model: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    duration_ms: float = 0.0
    extracted_at: datetime = Field(default_factory=datetime.now)


class ExtractedEntity(BaseModel):
    text: str
    type: EntityType = EntityType.OTHER
    description: Optional[str] = None
    confidence: float = 0.7


class DocumentSummary(BaseModel):
    title: str
    main_points: List[str] = Field(default_factory=list)
    key_topics: List[str] = Field(default_factory=list)
    document_type: DocumentType = DocumentType.UNKNOWN
    entities: List[ExtractedEntity] = Field(default_factory=list)
    word_count: int = 0
    page_count: Optional[int] = None
    language: Optional[str] = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class DocumentAnalysis(BaseModel):
    summary: DocumentSummary
    full_analysis: str = ""
    key_insights: List[str] = Field(default_factory=list)
    recommendations: Optional[List[str]] = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    processing_time_ms: float = 0.0
    model_used: str
    analysis_date: datetime = Field(default_factory=datetime.now)


class DocumentErrorInfo(BaseModel):
    kind: str
    message: str
    is_recoverable: bool = False
    details: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class ProcessedDocument(BaseModel):
    id: str
    original_file: FileMetadata
    status: DocumentStatus = DocumentStatus.UPLOADING
    uploaded_at: datetime = Field(default_factory=datetime.now)
    processed_at: Optional[datetime] = None

    remote_file_ref: Optional[Dict[str, Any]] = None

    summary: Optional[DocumentSummary] = None
    analysis: Optional[DocumentAnalysis] = None
    extracted_text: Optional[str] = None
    content_chunks: List[str] = Field(default_factory=list)
    extraction_details: Optional[ExtractionDetails] = None
    preview_text: Optional[str] = None

    error: Optional[DocumentErrorInfo] = None
    retry_count: int = 0

    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    is_favorite: bool = False

    def can_transition(self, target: DocumentStatus) -> bool:
        return target in ALLOWED_TRANSITIONS.get(self.status, set())
