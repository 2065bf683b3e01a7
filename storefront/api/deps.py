# storefront/api/deps.py
from typing import Generator, Optional

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from storefront.core.config import Settings
from storefront.core.errors import AuthenticationError, PermissionDeniedError
from storefront.schemas.token import TokenPayload
from storefront.services.checkout_service import CheckoutService
from storefront.services.payment.provider_factory import PaymentProviderFactory
from storefront.services.post_purchase import PostPurchaseDispatcher


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator:
    """Dependency to get database session."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_provider_factory(request: Request) -> PaymentProviderFactory:
    return request.app.state.provider_factory


def get_dispatcher(
    request: Request, background_tasks: BackgroundTasks
) -> PostPurchaseDispatcher:
    return PostPurchaseDispatcher(
        request.app.state.session_factory,
        request.app.state.settings,
        background_tasks=background_tasks,
    )


def get_checkout_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    provider_factory: PaymentProviderFactory = Depends(get_provider_factory),
    dispatcher: PostPurchaseDispatcher = Depends(get_dispatcher),
) -> CheckoutService:
    return CheckoutService(
        db,
        settings=settings,
        provider_factory=provider_factory,
        dispatcher=dispatcher,
    )


# The `tokenUrl` is only used by the OpenAPI docs; tokens come from the
# identity provider.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def _decode(token: str, settings: Settings) -> TokenPayload:
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    return TokenPayload(**payload)


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
) -> TokenPayload:
    if not token:
        raise AuthenticationError("Not authenticated")
    try:
        return _decode(token, settings)
    except (JWTError, ValueError):
        # Catches any error from jose or Pydantic validation
        raise AuthenticationError("Could not validate credentials")


def get_current_user_optional(
    token: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
) -> Optional[TokenPayload]:
    if token is None:
        return None
    try:
        return _decode(token, settings)
    except (JWTError, ValueError):
        return None


def get_current_admin(
    current_user: TokenPayload = Depends(get_current_user),
) -> TokenPayload:
    if not current_user.is_admin:
        raise PermissionDeniedError("Admin access required")
    return current_user
