"""Request dependencies shared by the API routes."""
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from tenderwatch.db.session import get_db
from tenderwatch.models.user import User


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the calling account from the X-User-Id header. Raises 401 if unknown."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = db.query(User).filter(User.id == x_user_id, User.is_active.is_(True)).first()
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user
