"""Contact form persistence."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quickbite.errors import APIError
from quickbite.models import ContactMessage
from quickbite.schemas import ContactCreate

logger = logging.getLogger(__name__)


async def save_contact_message(db: AsyncSession, data: ContactCreate) -> ContactMessage:
    contact = ContactMessage(name=data.name, email=data.email, message=data.message)
    db.add(contact)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception(f"Could not store contact message: {exc}")
        raise APIError(
            "Failed to send your message.", code="CONTACT_STORE_ERROR", status_code=500
        ) from exc

    await db.refresh(contact)
    logger.info(f"Contact message #{contact.id} received from {contact.email}")
    return contact
