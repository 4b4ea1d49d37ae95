"""
Processed Message Model - seen-set for inbound provider messages.

All four providers redeliver webhooks they consider unacknowledged, and the
BotBiz poller can see the same message on two pages. A row here means the
message was already answered; the stored reply is returned again instead of
re-running the ledger mutation.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from whatsapp_accounting.db.base import Base


class ProcessedMessage(Base):
    __tablename__ = "processed_messages"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(String(128), unique=True, nullable=False, index=True)
    sender = Column(String(64), nullable=False)
    intent = Column(String(32), nullable=False)
    reply = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ProcessedMessage message_id={self.message_id} intent={self.intent}>"
