"""Audit trail for administrative wallet actions."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from social_wallet.core.database import run_in_transaction
from social_wallet.models.audit import AuditEvent

logger = logging.getLogger(__name__)

WALLET_LOCKED = "wallet.locked"
WALLET_UNLOCKED = "wallet.unlocked"
WALLET_BONUS = "wallet.bonus"
PAYMENT_REFUNDED = "payment.refunded"
CLIENT_REGISTERED = "client.registered"
MARKETPLACE_UPDATED = "marketplace.updated"


class AuditService:
    """Append-only audit events; rows are never updated."""

    def __init__(self, db: Session):
        self.db = db

    def log_event(
        self,
        *,
        user_id: Optional[int],
        action: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        def _insert(tx: Session) -> AuditEvent:
            event = AuditEvent(
                user_id=user_id,
                action=action,
                target_type=target_type,
                target_id=str(target_id) if target_id is not None else None,
                ip_address=ip_address,
                metadata_json=json.dumps(metadata or {}, ensure_ascii=False),
            )
            tx.add(event)
            tx.flush()
            return event

        event = run_in_transaction(self.db, _insert)
        logger.info(f"Audit {action} by user_id={user_id} target={target_type}:{target_id}")
        return event

    def list_events(self, target_type: Optional[str] = None, target_id: Optional[str] = None, limit: int = 50) -> List[AuditEvent]:
        query = self.db.query(AuditEvent)
        if target_type:
            query = query.filter(AuditEvent.target_type == target_type)
        if target_id is not None:
            query = query.filter(AuditEvent.target_id == str(target_id))
        return query.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit).all()
