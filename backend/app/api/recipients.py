"""Recipients API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.recipient import Recipient
from app.models.user import User
from app.schemas.recipient import RecipientCreate, RecipientResponse

router = APIRouter(prefix="/recipients", tags=["recipients"])


@router.get("", response_model=list[RecipientResponse])
def list_recipients(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List your recipients, newest first."""
    return (
        db.query(Recipient)
        .filter(Recipient.user_id == current_user.id)
        .order_by(Recipient.created_at.desc())
        .all()
    )


@router.post("", response_model=RecipientResponse, status_code=status.HTTP_201_CREATED)
def create_recipient(
    data: RecipientCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Add a recipient. An existing recipient with the same email is returned as-is."""
    name = data.name.strip()
    email = str(data.email).strip().lower()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Recipient name is required",
        )
    
    existing = db.query(Recipient).filter(
        Recipient.user_id == current_user.id,
        Recipient.email == email,
    ).first()
    if existing:
        response.status_code = status.HTTP_200_OK
        return existing
    
    recipient = Recipient(user_id=current_user.id, name=name, email=email)
    db.add(recipient)
    db.commit()
    db.refresh(recipient)
    return recipient


@router.delete("/{recipient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_recipient(
    recipient_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a recipient and detach it from all switches."""
    recipient = db.query(Recipient).filter(
        Recipient.id == recipient_id,
        Recipient.user_id == current_user.id,
    ).first()
    
    if not recipient:
        raise HTTPException(status_code=404, detail="Recipient not found")
    
    db.delete(recipient)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
