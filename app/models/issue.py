"""
Pydantic models for civic issues.
These models handle validation for officer/citizen requests and API responses.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, List, Optional
from enum import Enum

from app.services.status_workflow import IssueStatus


class IssueCategory(str, Enum):
    """Fixed category enumeration; the reporter picks one at submission."""
    ROADS = "roads"
    GARBAGE = "garbage"
    WATER = "water"
    ELECTRICITY = "electricity"
    OTHER = "other"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ProviderName(str, Enum):
    """Which validation tier produced the result."""
    VISION_AI = "gemini-vision"
    SECONDARY_CLASSIFIER = "ai-backend"
    HEURISTIC = "heuristic"


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    coordinates: Optional[List[float]] = Field(None, description="[lng, lat] geospatial key")
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


class ValidationInfo(BaseModel):
    """Outcome of the validation cascade (absent until it completes)."""
    validated: bool = False
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    matches_description: bool = False
    response_text: str = ""
    provider_used: Optional[ProviderName] = None
    validated_at: Optional[datetime] = None
    failures: List[str] = Field(default_factory=list, description="Provider errors when no tier succeeded")


class IssueResponse(BaseModel):
    """
    Model for issue responses (what the API returns).
    Includes system-generated fields like ID, timestamps and validation metadata.
    """
    id: str = Field(..., description="Firestore document ID")
    reporter_id: str
    title: str
    description: str
    category: IssueCategory
    detected_category: Optional[str] = None
    image_url: str
    location: Location
    status: IssueStatus = IssueStatus.PENDING
    severity: Severity = Severity.MEDIUM
    upvotes: int = Field(0, ge=0)
    validation: Optional[ValidationInfo] = None
    confidence_score: Optional[float] = None
    status_history: List[Dict] = Field(default_factory=list, description="Status transition history")
    reopen_count: int = 0
    last_rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    distance_meters: Optional[float] = Field(None, description="Only set on proximity feed queries")

    class Config:
        extra = "ignore"
        json_schema_extra = {
            "example": {
                "id": "f3a9c1d2e4b5a6c7d8e9",
                "reporter_id": "user-42",
                "title": "Pothole on 5th",
                "description": "large pothole causing traffic hazard",
                "category": "roads",
                "detected_category": "roads",
                "image_url": "https://storage.googleapis.com/bucket/issues/abc.jpg",
                "location": {"lat": 12.9, "lng": 77.6, "coordinates": [77.6, 12.9], "city": "Bengaluru"},
                "status": "live",
                "severity": "high",
                "upvotes": 3,
                "validation": {
                    "validated": True,
                    "confidence": 0.85,
                    "matches_description": True,
                    "response_text": "Detected civic issue: 3 matching civic keywords found in description.",
                    "provider_used": "heuristic",
                    "validated_at": "2026-01-15T10:31:00Z"
                },
                "created_at": "2026-01-15T10:30:00Z"
            }
        }

    @classmethod
    def from_document(cls, data: Dict) -> "IssueResponse":
        return cls.model_validate(data)


class IssueUpdateRequest(BaseModel):
    """
    Officer update: move work forward and/or re-grade severity.
    At least one of status/severity must be present.
    """
    status: Optional[IssueStatus] = Field(None, description="Target status")
    severity: Optional[Severity] = Field(None, description="New severity")
    note: Optional[str] = Field(None, max_length=500, description="Optional note explaining the change")


class ResolutionRejectRequest(BaseModel):
    """Citizen says the issue is not fixed."""
    reason: Optional[str] = Field(None, max_length=1000)
