"""Identity business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import get_db_session
from academy.core.enums import RoleEnum
from academy.core.security import decode_token, hash_password, oauth2_scheme, optional_oauth2_scheme
from academy.modules.identity.models import User
from academy.modules.identity.repository import IdentityRepository
from academy.shared.exceptions import NotFoundException, UnauthorizedException, ValidationException
from academy.shared.utils import normalize_email


class IdentityService:
    """Identity domain service."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    async def ensure_default_roles(self) -> None:
        """Ensure all default roles exist."""
        for role_name in (RoleEnum.PURCHASER, RoleEnum.INSTRUCTOR, RoleEnum.ADMIN):
            role = await self.repository.get_role_by_name(role_name)
            if role is None:
                await self.repository.create_role(role_name)

    async def create_inline_account(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone: str | None,
    ) -> User:
        """Create a purchaser account during checkout."""
        email = normalize_email(email)
        existing_user = await self.repository.get_user_by_email(email)
        if existing_user is not None:
            raise ValidationException({"email": "An account with this email already exists"})

        role = await self.repository.get_role_by_name(RoleEnum.PURCHASER)
        if role is None:
            raise NotFoundException("Role not found")

        return await self.repository.create_user(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role_id=role.id,
        )

    async def get_user_from_access_token(self, token: str) -> User:
        """Resolve user from access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise UnauthorizedException("Invalid access token")

        subject = payload.get("sub")
        if not subject:
            raise UnauthorizedException("Token subject is missing")

        user = await self.repository.get_user_by_id(UUID(subject))
        if user is None:
            raise UnauthorizedException("User not found")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")

        return user


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User:
    """Resolve currently authenticated user from bearer token."""
    return await service.get_user_from_access_token(token)


async def get_optional_user(
    token: str | None = Depends(optional_oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User | None:
    """Resolve user when a bearer token is sent; guests get None."""
    if token is None:
        return None
    return await service.get_user_from_access_token(token)


def require_roles(*roles: RoleEnum):
    """Dependency factory for role-based access."""

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role.name not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted for your role",
            )
        return current_user

    return _checker
