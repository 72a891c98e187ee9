"""
Site content routes: navigation tree, site settings, static pages,
contact form and careers.

Reads are public; changes require an admin.
"""

import logging
from typing import Annotated, Optional
from uuid import uuid4

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.email.resend_adapter import email_service
from api.dependencies import get_current_admin_user
from api.middleware.rate_limit import limiter
from api.schemas.site import (
    ContactMessageResponse,
    ContactMessageUpdate,
    ContactRequest,
    JobApplicationRequest,
    JobApplicationResponse,
    JobPostingRequest,
    JobPostingResponse,
    JobPostingUpdate,
    NavLinkInput,
    NavUpdateResponse,
    PageResponse,
    PageUpdateRequest,
    SettingValue,
)
from core.domain.comment_tree import assemble_forest, forest_to_dicts
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models.admin import AuditAction, AuditTargetType
from infrastructure.database.models.site import (
    ContactMessage,
    JobApplication,
    JobPosting,
    NavLink,
    Page,
    SiteSetting,
)
from infrastructure.database.models.user import User
from services.audit import add_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/site", tags=["site"])

AdminUser = Annotated[User, Depends(get_current_admin_user)]

# Served until an admin saves a navigation tree
DEFAULT_NAV_LINKS = [
    {"name": "World", "href": "/category/world", "sublinks": [
        {"name": "Europe", "href": "/category/europe"},
        {"name": "Asia", "href": "/category/asia"},
        {"name": "Americas", "href": "/category/americas"},
        {"name": "Africa", "href": "/category/africa"},
    ]},
    {"name": "Business", "href": "/category/business", "sublinks": [
        {"name": "Markets", "href": "/category/markets"},
        {"name": "Companies", "href": "/category/companies"},
        {"name": "Economy", "href": "/category/economy"},
    ]},
    {"name": "Technology", "href": "/category/technology", "sublinks": [
        {"name": "AI", "href": "/category/ai"},
        {"name": "Gadgets", "href": "/category/gadgets"},
    ]},
    {"name": "Entertainment", "href": "/category/entertainment"},
    {"name": "Sport", "href": "/category/sport"},
]


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _render_link(link: NavLink) -> dict:
    return {"id": link.id, "name": link.name, "href": link.href}


def _default_nav() -> list[dict]:
    """Default links with ids derived from their position."""
    result = []
    for index, link in enumerate(DEFAULT_NAV_LINKS):
        link_id = f"nav-{index}"
        result.append({
            "id": link_id,
            "name": link["name"],
            "href": link["href"],
            "sublinks": [
                {"id": f"{link_id}-{sub_index}", "name": sub["name"], "href": sub["href"], "sublinks": []}
                for sub_index, sub in enumerate(link.get("sublinks", []))
            ],
        })
    return result


def flatten_nav_tree(links: list[NavLinkInput]) -> list[NavLink]:
    """
    Turn a submitted tree into rows, parents before children.

    Every row gets a fresh id; ``sort_order`` is the position among
    siblings.
    """
    rows: list[NavLink] = []
    stack: list[tuple[NavLinkInput, Optional[str], int]] = [
        (link, None, index) for index, link in reversed(list(enumerate(links)))
    ]
    while stack:
        link, parent_id, sort_order = stack.pop()
        row = NavLink(
            id=str(uuid4()),
            name=link.name,
            href=link.href,
            parent_id=parent_id,
            sort_order=sort_order,
        )
        rows.append(row)
        for index in range(len(link.sublinks) - 1, -1, -1):
            stack.append((link.sublinks[index], row.id, index))
    return rows


def _decode_setting(value: Optional[str]):
    if value == "true":
        return True
    if value == "false":
        return False
    return value


def _encode_setting(value: SettingValue) -> Optional[str]:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return None
    return str(value)


# ============================================================================
# Navigation
# ============================================================================


@router.get("/nav-links")
async def get_nav_links(db: AsyncSession = Depends(get_db)) -> list[dict]:
    result = await db.execute(select(NavLink).order_by(NavLink.sort_order, NavLink.id))
    links = result.scalars().all()
    if not links:
        return _default_nav()
    return forest_to_dicts(assemble_forest(links), _render_link, replies_key="sublinks")


@router.put("/nav-links", response_model=NavUpdateResponse)
async def replace_nav_links(
    request: Request,
    admin_user: AdminUser,
    links: list[NavLinkInput] = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """Replace the whole navigation tree in one transaction."""
    rows = flatten_nav_tree(links)

    await db.execute(delete(NavLink))
    db.add_all(rows)
    add_audit_log(
        db,
        admin_user=admin_user,
        action=AuditAction.NAV_LINKS_REPLACED,
        target_type=AuditTargetType.SITE,
        target_id=None,
        description=f"Replaced navigation with {len(rows)} links",
        ip_address=_client_ip(request),
    )
    await db.commit()

    return NavUpdateResponse(message="Navigation updated successfully", count=len(rows))


# ============================================================================
# Site settings
# ============================================================================


@router.get("/settings")
async def get_site_settings(db: AsyncSession = Depends(get_db)) -> dict:
    result = await db.execute(select(SiteSetting))
    return {row.key: _decode_setting(row.value) for row in result.scalars().all()}


@router.put("/settings")
async def update_site_settings(
    request: Request,
    admin_user: AdminUser,
    values: dict[str, SettingValue] = Body(...),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Upsert the given keys. Keys not sent are left alone."""
    for key, value in values.items():
        if not key or len(key) > 100:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid setting key: {key[:100]!r}",
            )

    existing = {
        row.key: row
        for row in (
            await db.execute(select(SiteSetting).where(SiteSetting.key.in_(list(values))))
        ).scalars().all()
    }
    for key, value in values.items():
        row = existing.get(key)
        if row is None:
            db.add(SiteSetting(key=key, value=_encode_setting(value)))
        else:
            row.value = _encode_setting(value)

    add_audit_log(
        db,
        admin_user=admin_user,
        action=AuditAction.SITE_SETTINGS_UPDATED,
        target_type=AuditTargetType.SITE,
        target_id=None,
        description="Updated site settings: " + ", ".join(sorted(values)),
        ip_address=_client_ip(request),
    )
    await db.commit()
    return {"message": "Site settings updated successfully"}


# ============================================================================
# Pages
# ============================================================================


@router.get("/pages/{slug}", response_model=PageResponse)
async def get_page(slug: str, db: AsyncSession = Depends(get_db)):
    page = await db.get(Page, slug)
    if not page:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Page not found",
        )
    return page


@router.put("/pages/{slug}", response_model=PageResponse)
async def upsert_page(
    slug: str,
    body: PageUpdateRequest,
    admin_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    page = await db.get(Page, slug)
    if page is None:
        page = Page(slug=slug, title=body.title, content=body.content)
        db.add(page)
    else:
        page.title = body.title
        page.content = body.content
    await db.commit()
    await db.refresh(page)
    return page


# ============================================================================
# Contact
# ============================================================================


@router.post("/contact", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def submit_contact_message(
    request: Request,
    body: ContactRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    message = ContactMessage(
        name=body.name,
        email=body.email,
        subject=body.subject,
        message=body.message,
    )
    db.add(message)
    await db.commit()

    if settings.contact_inbox_email:
        sent = await email_service.send_contact_notification(
            to_email=settings.contact_inbox_email,
            sender_name=body.name,
            sender_email=body.email,
            subject=body.subject or "New message",
            message=body.message,
        )
        if not sent:
            logger.warning("Contact message %s stored but not forwarded", message.id)

    return {"message": "Thank you for your message", "id": message.id}


async def _get_contact_or_404(db: AsyncSession, message_id: str) -> ContactMessage:
    message = await db.get(ContactMessage, message_id)
    if not message:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )
    return message


@router.get("/contact-messages", response_model=list[ContactMessageResponse])
async def list_contact_messages(admin_user: AdminUser, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(ContactMessage).order_by(ContactMessage.created_at.desc()))
    return result.scalars().all()


@router.put("/contact-messages/{message_id}", response_model=ContactMessageResponse)
async def update_contact_message(
    message_id: str,
    body: ContactMessageUpdate,
    admin_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    message = await _get_contact_or_404(db, message_id)
    message.is_read = body.is_read
    await db.commit()
    await db.refresh(message)
    return message


@router.delete("/contact-messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact_message(
    message_id: str,
    admin_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    message = await _get_contact_or_404(db, message_id)
    await db.delete(message)
    await db.commit()


# ============================================================================
# Careers
# ============================================================================


async def _get_job_or_404(db: AsyncSession, job_id: str, active_only: bool = False) -> JobPosting:
    job = await db.get(JobPosting, job_id)
    if not job or (active_only and not job.is_active):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job posting not found",
        )
    return job


@router.get("/jobs", response_model=list[JobPostingResponse])
async def list_jobs(db: AsyncSession = Depends(get_db)):
    """Open positions."""
    result = await db.execute(
        select(JobPosting)
        .where(JobPosting.is_active.is_(True))
        .order_by(JobPosting.created_at.desc())
    )
    return result.scalars().all()


@router.post("/jobs", response_model=JobPostingResponse, status_code=status.HTTP_201_CREATED)
async def create_job(body: JobPostingRequest, admin_user: AdminUser, db: AsyncSession = Depends(get_db)):
    job = JobPosting(**body.model_dump())
    db.add(job)
    await db.commit()
    await db.refresh(job)
    return job


@router.put("/jobs/{job_id}", response_model=JobPostingResponse)
async def update_job(
    job_id: str,
    body: JobPostingUpdate,
    admin_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    job = await _get_job_or_404(db, job_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if field in ("title", "description", "is_active") and value is None:
            continue
        setattr(job, field, value)
    await db.commit()
    await db.refresh(job)
    return job


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(job_id: str, admin_user: AdminUser, db: AsyncSession = Depends(get_db)):
    job = await _get_job_or_404(db, job_id)
    await db.delete(job)
    await db.commit()


@router.post(
    "/jobs/{job_id}/apply",
    response_model=JobApplicationResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("5/minute")
async def apply_for_job(
    request: Request,
    job_id: str,
    body: JobApplicationRequest,
    db: AsyncSession = Depends(get_db),
):
    """Apply to an open position. The resume is referenced by URL."""
    job = await _get_job_or_404(db, job_id, active_only=True)
    application = JobApplication(job_id=job.id, **body.model_dump())
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


@router.get("/jobs/{job_id}/applications", response_model=list[JobApplicationResponse])
async def list_job_applications(
    job_id: str,
    admin_user: AdminUser,
    db: AsyncSession = Depends(get_db),
):
    await _get_job_or_404(db, job_id)
    result = await db.execute(
        select(JobApplication)
        .where(JobApplication.job_id == job_id)
        .order_by(JobApplication.created_at.desc())
    )
    return result.scalars().all()
