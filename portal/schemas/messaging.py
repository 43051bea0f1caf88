"""
Messaging form schemas.
"""
from typing import Optional

from pydantic import Field

from .forms import FormModel


class MessageForm(FormModel):
    content: str = Field(..., description="Message", json_schema_extra={"widget": "textarea"})


class ConversationForm(FormModel):
    """New conversation with one contact."""
    recipient_id: str = Field(..., description="Destinataire")
    subject: Optional[str] = Field(None, description="Sujet")
    content: str = Field(..., description="Message", json_schema_extra={"widget": "textarea"})

    def to_payload(self):
        payload = {"recipients": [self.recipient_id], "content": self.content}
        if self.subject:
            payload["subject"] = self.subject
        return payload
