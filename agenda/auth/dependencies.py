import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from agenda.auth import jwt_handler
from agenda.database import SessionLocal
from agenda.models.user import User

security = HTTPBearer()


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def load_user_by_email(email: str) -> User | None:
    db = SessionLocal()
    try:
        return db.query(User).filter(User.email == email).first()
    finally:
        db.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    try:
        claims = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError as exc:
        raise unauthorized("Token expired") from exc
    except jwt.PyJWTError as exc:
        raise unauthorized("Invalid token") from exc

    user = load_user_by_email(claims["sub"])
    if user is None:
        raise unauthorized("User not found")

    # A role change invalidates tokens issued under the previous role.
    if claims["role"] != user.role:
        raise unauthorized("Token role is out of date")
    return user


def get_current_professional(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != "professional":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only professionals can manage an agenda",
        )
    return current_user
