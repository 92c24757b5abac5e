"""
Pydantic v2 models for the sales management REST API.

Field names are snake_case; aliases carry the camelCase / ``_id`` names the
API sends and expects. Always serialize request bodies with
``by_alias=True``.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiModel(BaseModel):
    """Base for API models: accept both alias and field names on input."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _as_ref(value):
    """Unpopulated references arrive as bare id strings."""
    if isinstance(value, str):
        return {"_id": value}
    return value


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


class Lead(StrEnum):
    """Lead classification attached to every feedback record."""

    red = "Red"
    green = "Green"
    orange = "Orange"


class StorageReference(ApiModel):
    """Durable pointer to an uploaded audio object. Immutable."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    key: str = Field(min_length=1, max_length=500)
    original_name: str = Field(alias="originalName", min_length=1, max_length=255)


class ProductLine(ApiModel):
    """One (product, quantity) line item of a feedback draft."""

    product: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class FeedbackPayload(ApiModel):
    """POST /feedback and PUT /feedback/{id} request body."""

    client: str = Field(min_length=1)
    lead: Lead = Lead.green
    products: list[ProductLine] = Field(min_length=1)
    notes: str = Field(default="", max_length=1000)
    audio: StorageReference | None = None
    date: datetime | None = None

    def to_request(self) -> dict:
        """Serialize for the wire. ``audio`` is always sent so edits can clear it."""
        body = self.model_dump(mode="json", by_alias=True, exclude={"date"})
        if self.date is not None:
            body["date"] = self.date.isoformat()
        return body


class ClientRef(ApiModel):
    """Client as populated inside a feedback record."""

    id: str = Field(alias="_id")
    name: str = ""
    company: str = ""
    phone: str = ""

    @property
    def label(self) -> str:
        name = self.name or self.id
        return f"{name} ({self.company})" if self.company else name


class ProductRef(ApiModel):
    """Product as populated inside a feedback line item."""

    id: str = Field(alias="_id")
    product_name: str = Field(default="", alias="productName")


class UserRef(ApiModel):
    id: str = Field(alias="_id")
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    email: str = ""


class RecordProductLine(ApiModel):
    """A line item as returned by the API (product populated or bare id)."""

    product: ProductRef
    quantity: int = 0

    @field_validator("product", mode="before")
    @classmethod
    def coerce_product(cls, value):
        return _as_ref(value)


class FeedbackRecord(ApiModel):
    """A persisted feedback record as returned by the API."""

    id: str = Field(alias="_id")
    client: ClientRef | None = None
    lead: Lead = Lead.green
    date: datetime | None = None
    products: list[RecordProductLine] = Field(default_factory=list)
    audio: StorageReference | None = None
    notes: str = ""
    created_by: UserRef | None = Field(default=None, alias="createdBy")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @field_validator("client", "created_by", mode="before")
    @classmethod
    def coerce_refs(cls, value):
        return _as_ref(value)

    @field_validator("audio", mode="before")
    @classmethod
    def empty_audio_is_none(cls, value):
        # Records without a voice note carry ``audio: {}``
        if isinstance(value, dict) and not value.get("key"):
            return None
        return value

    @property
    def has_audio(self) -> bool:
        return self.audio is not None


class FeedbackPage(ApiModel):
    """GET /feedback response."""

    feedback: list[FeedbackRecord] = Field(default_factory=list)
    total_pages: int = Field(default=1, alias="totalPages")
    current_page: int = Field(default=1, alias="currentPage")
    total: int = 0


class LeadStat(ApiModel):
    lead: Lead = Field(alias="_id")
    count: int = 0
    total_quantity: int = Field(default=0, alias="totalQuantity")


class FeedbackStats(ApiModel):
    """GET /feedback/stats response."""

    lead_stats: list[LeadStat] = Field(default_factory=list, alias="leadStats")
    total_feedback: int = Field(default=0, alias="totalFeedback")


# ---------------------------------------------------------------------------
# Signed URLs
# ---------------------------------------------------------------------------


class SignedUpload(ApiModel):
    """POST /feedback/signed-url response: a write credential for one object."""

    upload_url: str = Field(alias="signedUrl")
    key: str
    expires_in: int = Field(default=300, alias="expiresIn")


class PlaybackUrl(ApiModel):
    """GET /feedback/{id}/audio-url response: a time-limited read URL."""

    signed_url: str = Field(alias="signedUrl")
    key: str
    original_name: str = Field(default="", alias="originalName")
    expires_in: int = Field(default=3600, alias="expiresIn")


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------


class ClientSummary(ApiModel):
    """Entry of GET /clients used to populate the client picker."""

    id: str = Field(alias="_id")
    name: str
    company: str = ""
    phone: str = ""
    status: str = "prospect"

    @property
    def label(self) -> str:
        return f"{self.name} ({self.company})" if self.company else self.name


class ProductSummary(ApiModel):
    """Entry of GET /products used to populate the product picker."""

    id: str = Field(alias="_id")
    product_name: str = Field(alias="productName")
    is_active: bool = Field(default=True, alias="isActive")
