"""
Site content schemas: navigation, settings, pages, contact and careers.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field

SettingValue = Union[bool, int, float, str, None]


class NavLinkInput(BaseModel):
    """One link of the navigation tree as submitted by an admin.

    ``id`` may be omitted for new links. Nesting is expressed with
    ``sublinks``.
    """

    id: Optional[str] = Field(None, max_length=36)
    name: str = Field(..., min_length=1, max_length=100)
    href: str = Field(..., min_length=1, max_length=500)
    sublinks: list["NavLinkInput"] = Field(default_factory=list)


class NavUpdateResponse(BaseModel):
    message: str
    count: int


class PageResponse(BaseModel):
    slug: str
    title: str
    content: str
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PageUpdateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field("", max_length=200000)


class ContactRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    subject: Optional[str] = Field(None, max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)


class ContactMessageResponse(BaseModel):
    id: str
    name: str
    email: str
    subject: Optional[str] = None
    message: str
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ContactMessageUpdate(BaseModel):
    is_read: bool


class JobPostingRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    type: Optional[str] = Field(None, max_length=50)
    description: str = Field("", max_length=20000)
    is_active: bool = True


class JobPostingUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    type: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=20000)
    is_active: Optional[bool] = None


class JobPostingResponse(BaseModel):
    id: str
    title: str
    location: Optional[str] = None
    type: Optional[str] = None
    description: str
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class JobApplicationRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    cover_letter: Optional[str] = Field(None, max_length=10000)
    resume_url: Optional[str] = Field(None, max_length=1000)


class JobApplicationResponse(BaseModel):
    id: str
    job_id: str
    name: str
    email: str
    cover_letter: Optional[str] = None
    resume_url: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
