"""Switches API endpoints."""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_now
from app.models.recipient import Recipient, SwitchRecipient
from app.models.switch import SWITCH_STATUSES, Message, Switch
from app.models.user import User
from app.schemas.switch import (
    MessageContent,
    MessageResponse,
    SwitchCreate,
    SwitchRecipientsUpdate,
    SwitchResponse,
    SwitchStatusUpdate,
    SwitchUpdate,
)
from app.services.checkins import InvalidTransition, set_switch_active
from app.services.deadlines import get_baseline, get_deadline, to_iso

router = APIRouter(prefix="/switches", tags=["switches"])


def get_owned_switch(db: Session, switch_id: str, user: User) -> Switch:
    """Fetch a switch owned by the user or raise 404."""
    switch = db.query(Switch).filter(
        Switch.id == switch_id,
        Switch.user_id == user.id,
    ).first()

    if not switch:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Switch not found",
        )
    return switch


def get_owned_recipients(db: Session, recipient_ids: list[str], user: User) -> list[Recipient]:
    """Resolve recipient ids, rejecting any the user does not own."""
    unique_ids = list(dict.fromkeys(recipient_ids))
    if not unique_ids:
        return []

    recipients = db.query(Recipient).filter(
        Recipient.id.in_(unique_ids),
        Recipient.user_id == user.id,
    ).all()
    if len(recipients) != len(unique_ids):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unknown recipient",
        )
    return recipients


def build_switch_response(switch: Switch) -> SwitchResponse:
    """Switch response with its current deadline."""
    baseline = get_baseline(switch)
    deadline = (
        get_deadline(baseline, switch.interval_days, switch.grace_days)
        if baseline is not None
        else None
    )
    return SwitchResponse(
        id=switch.id,
        name=switch.name,
        status=switch.status,
        interval_days=switch.interval_days,
        grace_days=switch.grace_days,
        timezone=switch.timezone,
        created_at=switch.created_at,
        last_checkin_at=switch.last_checkin_at,
        last_alert_sent_at=switch.last_alert_sent_at,
        deadline_at=to_iso(deadline) if deadline else None,
        recipient_ids=[link.recipient_id for link in switch.recipient_links],
        has_message=switch.message is not None and bool((switch.message.body or "").strip()),
    )


@router.get("", response_model=list[SwitchResponse])
def list_switches(
    status_filter: str | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List your switches, optionally filtered by status."""
    query = db.query(Switch).filter(Switch.user_id == current_user.id)
    if status_filter:
        if status_filter not in SWITCH_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"status must be one of {', '.join(SWITCH_STATUSES)}",
            )
        query = query.filter(Switch.status == status_filter)

    switches = query.order_by(Switch.created_at.desc()).all()
    return [build_switch_response(s) for s in switches]


@router.post("", response_model=SwitchResponse, status_code=status.HTTP_201_CREATED)
def create_switch(
    data: SwitchCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    """Create an active switch; creation counts as the first check-in."""
    recipients = get_owned_recipients(db, data.recipient_ids, current_user)

    created_at = to_iso(now)
    switch = Switch(
        user_id=current_user.id,
        name=data.name.strip(),
        status="active",
        interval_days=data.interval_days,
        grace_days=data.grace_days,
        timezone=data.timezone,
        created_at=created_at,
        last_checkin_at=created_at,
    )
    db.add(switch)
    db.flush()

    if data.message is not None:
        db.add(Message(switch_id=switch.id, subject=data.message.subject, body=data.message.body))
    for recipient in recipients:
        db.add(SwitchRecipient(switch_id=switch.id, recipient_id=recipient.id))

    db.commit()
    db.refresh(switch)
    return build_switch_response(switch)


@router.get("/{switch_id}", response_model=SwitchResponse)
def get_switch(
    switch_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get one of your switches."""
    return build_switch_response(get_owned_switch(db, switch_id, current_user))


@router.patch("/{switch_id}", response_model=SwitchResponse)
def update_switch(
    switch_id: str,
    data: SwitchUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Edit a switch's name, interval, grace period or display timezone."""
    switch = get_owned_switch(db, switch_id, current_user)

    if data.name is not None:
        switch.name = data.name.strip()
    if data.interval_days is not None:
        switch.interval_days = data.interval_days
    if data.grace_days is not None:
        switch.grace_days = data.grace_days
    if data.timezone is not None:
        switch.timezone = data.timezone

    db.commit()
    db.refresh(switch)
    return build_switch_response(switch)


@router.delete("/{switch_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_switch(
    switch_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a switch along with its message and recipient links."""
    switch = get_owned_switch(db, switch_id, current_user)
    db.delete(switch)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{switch_id}/status", response_model=SwitchResponse)
def update_switch_status(
    switch_id: str,
    data: SwitchStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    """Pause or reactivate a switch."""
    switch = get_owned_switch(db, switch_id, current_user)
    try:
        switch = set_switch_active(db, switch, data.active, now)
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return build_switch_response(switch)


@router.get("/{switch_id}/message", response_model=MessageResponse)
def get_switch_message(
    switch_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get the message a switch sends when it triggers."""
    switch = get_owned_switch(db, switch_id, current_user)
    if switch.message is None:
        raise HTTPException(status_code=404, detail="Message not found")
    return switch.message


@router.put("/{switch_id}/message", response_model=MessageResponse)
def put_switch_message(
    switch_id: str,
    data: MessageContent,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create or replace a switch's message."""
    switch = get_owned_switch(db, switch_id, current_user)

    message = switch.message
    if message is None:
        message = Message(switch_id=switch.id)
        db.add(message)
    message.subject = data.subject
    message.body = data.body

    db.commit()
    db.refresh(message)
    return message


@router.put("/{switch_id}/recipients", response_model=SwitchResponse)
def put_switch_recipients(
    switch_id: str,
    data: SwitchRecipientsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Replace the set of recipients a switch notifies."""
    switch = get_owned_switch(db, switch_id, current_user)
    recipients = get_owned_recipients(db, data.recipient_ids, current_user)

    wanted = {r.id for r in recipients}
    for link in list(switch.recipient_links):
        if link.recipient_id not in wanted:
            switch.recipient_links.remove(link)

    current = {link.recipient_id for link in switch.recipient_links}
    for recipient_id in wanted - current:
        switch.recipient_links.append(SwitchRecipient(recipient_id=recipient_id))

    db.commit()
    db.refresh(switch)
    return build_switch_response(switch)
