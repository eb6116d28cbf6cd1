"""Reference Routes — create, edit/reply, and list received references.

Invariants:
    - Required-field checks answer before authentication, in the route's own wording
    - Rule failures are 400 except author/recipient mismatches, which are 403
    - Success bodies carry the writer `mode` so schema fallbacks are visible

Design Decisions:
    - Routes only validate shape and map statuses; ReferenceFlow owns the
      writer chain and the notification side effect
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.api.auth import get_current_user_id, require_user_id, security
from conxion.api.rule_errors import rule_errors
from conxion.core.errors import InvalidRequestError
from conxion.core.schema_compat import text_value
from conxion.infrastructure.database import get_db
from conxion.schemas.references import ReferenceCreate, ReferenceUpdate
from conxion.services.reference_flow import ReferenceFlow
from conxion.services.reference_writer import ReferenceWriter

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/references", tags=["references"])

@router.post("")
async def create_reference(
    body: ReferenceCreate,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    if not body.recipient_id or not body.sentiment or not body.body:
        raise InvalidRequestError("recipientId, sentiment, and body are required.")
    me = require_user_id(credentials)

    with rule_errors({}, default=400):
        return await ReferenceFlow(db).create(
            me,
            body.recipient_id,
            body.sentiment,
            body.body,
            entity_type=body.entity_type or body.context,
            entity_id=body.entity_id,
            connection_id=body.connection_id,
            context=body.context,
        )


@router.patch("")
async def update_reference(
    body: ReferenceUpdate,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    if not body.mode or not body.reference_id:
        raise InvalidRequestError("mode and referenceId are required.")
    me = require_user_id(credentials)

    if body.mode == "edit" and (not body.sentiment or not body.body):
        raise InvalidRequestError("sentiment and body are required for edit.")
    if body.mode == "reply" and not body.reply_text:
        raise InvalidRequestError("replyText is required for reply.")
    if body.mode not in ("edit", "reply"):
        raise InvalidRequestError("Unsupported mode.")

    # Mismatched author/recipient rules carry their own 403
    flow = ReferenceFlow(db)
    if body.mode == "edit":
        return await flow.edit(me, body.reference_id, body.sentiment, body.body)
    return await flow.reply(me, body.reference_id, body.reply_text)


@router.get("")
async def list_references(
    user_id: UUID = Query(..., alias="userId"),
    limit: int = Query(100, ge=1, le=500),
    me: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """References received by a user, newest first."""
    rows = await ReferenceWriter(db).received_by(user_id, limit=limit)
    return {
        "ok": True,
        "references": [
            {
                "id": text_value(r.id),
                "connection_id": text_value(r.connection_id),
                "author_id": text_value(r.author_id),
                "recipient_id": text_value(r.recipient_id),
                "entity_type": r.entity_type,
                "entity_id": text_value(r.entity_id),
                "sentiment": r.sentiment,
                "body": r.body,
                "edit_count": r.edit_count,
                "reply_text": r.reply_text,
                "replied_at": r.replied_at.isoformat() if r.replied_at else None,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ],
    }
