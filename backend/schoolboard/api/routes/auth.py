import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from schoolboard.api.deps import get_current_user, get_db
from schoolboard.core.security import create_access_token, verify_password
from schoolboard.models.user import User
from schoolboard.schemas.user import Token, UserLogin, UserOut
from schoolboard.services.accounts import find_by_username

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=Token)
def login(payload: UserLogin, db: Session = Depends(get_db)) -> Token:
    user = find_by_username(db, payload.username)
    if user is None or not verify_password(payload.password, user.hashed_password):
        logger.info("Rejected login for username %s", payload.username.lower())
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")

    token = create_access_token(user.id, role=user.role.value, username=user.username)
    return Token(access_token=token, token_type="bearer", user=UserOut.model_validate(user))


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)) -> UserOut:
    return current_user
