"""
 The "Contact us" form. We don't send emails, the message just goes to the log.
"""

import logging

from fastapi import APIRouter

from models import ContactMessage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/contact", status_code=201)
def send_contact_message(message: ContactMessage):
    logger.info("Contact message from %s: %s", message.name, message.subject)
    return {"message": "Thanks! We'll get back to you soon."}
