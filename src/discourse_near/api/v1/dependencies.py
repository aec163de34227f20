"""Shared API dependencies and error translation."""

from typing import Annotated, NoReturn

from fastapi import Depends, HTTPException, Request, status

from discourse_near.services.container import ServiceContainer
from discourse_near.services.errors import (
    CredentialFormatError,
    DecryptionFailedError,
    ForumPostRejectedError,
    ForumResolutionFailedError,
    IdentitySignatureInvalidError,
    InvalidNonceError,
    KeyGenerationError,
    LinkingError,
    NoLinkageFoundError,
)
from discourse_near.services.linking import LinkingService

HTTP_CLIENT_ERROR_MAX = 499


def get_container(request: Request) -> ServiceContainer:
    """Return the service container created at application startup."""
    container: ServiceContainer = request.app.state.container
    return container


def get_linking_service(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> LinkingService:
    return container.linking


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]
LinkingServiceDep = Annotated[LinkingService, Depends(get_linking_service)]


def raise_http_error(err: LinkingError) -> NoReturn:
    """Translate a workflow failure into an HTTP error.

    Messages carry no key material; key generation failures are reported
    without detail.
    """
    if isinstance(err, InvalidNonceError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired nonce",
        ) from err
    if isinstance(err, DecryptionFailedError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to decrypt payload",
        ) from err
    if isinstance(err, CredentialFormatError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(err),
        ) from err
    if isinstance(err, ForumResolutionFailedError):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not resolve Discourse user",
        ) from err
    if isinstance(err, IdentitySignatureInvalidError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid NEAR signature: {err}",
        ) from err
    if isinstance(err, NoLinkageFoundError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(err),
        ) from err
    if isinstance(err, ForumPostRejectedError):
        upstream = err.status_code
        client_side = upstream is not None and upstream <= HTTP_CLIENT_ERROR_MAX
        raise HTTPException(
            status_code=(
                status.HTTP_422_UNPROCESSABLE_CONTENT if client_side else status.HTTP_502_BAD_GATEWAY
            ),
            detail=str(err),
        ) from err
    if isinstance(err, KeyGenerationError):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error",
        ) from err
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Request failed",
    ) from err
