"""FastAPI adapter exposing the client registry."""

import logging
import secrets
from typing import Optional

from fastapi import FastAPI, HTTPException, status, Depends, Header

from ..errors import (
    AlreadyExists,
    ClientRegistryError,
    InvalidName,
    LedgerUnreadable,
    NotFound,
)
from .models import (
    ClientCreateRequest,
    ClientCreatedResponse,
    ClientConfigResponse,
    ClientListResponse,
    ErrorResponse,
    HealthResponse,
    IdentityListResponse,
    MessageResponse,
)
from .registry import ClientRegistry
from .settings import RegistrySettings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="OpenVPN Client Administration",
    description="Issue, bundle and revoke OpenVPN client certificates",
    version="1.0.0",
)

settings = RegistrySettings()
registry = ClientRegistry(settings)

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def get_registry() -> ClientRegistry:
    """Registry dependency; overridden in tests."""
    return registry


def verify_api_key(
    x_api_key: Optional[str] = Header(None),
    registry: ClientRegistry = Depends(get_registry)
) -> str:
    """
    Verify API key from header.

    Stands in for the token authentication of the surrounding deployment.
    """
    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required"
        )

    expected = registry.settings.api_key
    if expected and not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key"
        )
    return x_api_key


@app.get("/health", response_model=HealthResponse)
async def health_check(registry: ClientRegistry = Depends(get_registry)):
    """Health check endpoint."""
    try:
        valid_clients = len(await registry.list())
        ledger_readable = True
    except LedgerUnreadable as e:
        logger.error(f"Health check: {e}")
        valid_clients = 0
        ledger_readable = False

    try:
        crl = await registry.crl_status()
    except ClientRegistryError as e:
        logger.error(f"Health check: {e}")
        crl = None

    crl_stale = crl is not None and crl.is_stale

    return HealthResponse(
        status="healthy" if ledger_readable and crl is not None and not crl_stale else "degraded",
        ledger_readable=ledger_readable,
        valid_clients=valid_clients,
        crl=crl,
        crl_stale=crl_stale,
    )


@app.get("/api/clients", response_model=ClientListResponse)
async def list_clients(
    registry: ClientRegistry = Depends(get_registry),
    api_key: str = Depends(verify_api_key)
):
    """List clients holding a valid certificate."""
    try:
        return ClientListResponse(clients=await registry.list())

    except ClientRegistryError as e:
        logger.error(f"Failed to get client list: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get client list"
        )


@app.get("/api/clients/identities", response_model=IdentityListResponse)
async def list_identities(
    registry: ClientRegistry = Depends(get_registry),
    api_key: str = Depends(verify_api_key)
):
    """List every ledger identity with its status."""
    try:
        return IdentityListResponse(identities=await registry.identities())

    except ClientRegistryError as e:
        logger.error(f"Failed to get identity list: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get identity list"
        )


@app.post("/api/clients", response_model=ClientCreatedResponse, responses=ERROR_RESPONSES)
async def create_client(
    request: ClientCreateRequest,
    registry: ClientRegistry = Depends(get_registry),
    api_key: str = Depends(verify_api_key)
):
    """
    Create a client certificate and return its bundle.

    Requires API key authentication.
    """
    try:
        config = await registry.create(request.client_name, encrypt_key=request.use_password)

        return ClientCreatedResponse(
            message="Client created successfully",
            client_name=request.client_name,
            config_file=config,
        )

    except InvalidName:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid client name. Use only alphanumeric characters, underscores, and dashes."
        )
    except AlreadyExists:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Client already exists"
        )
    except ClientRegistryError as e:
        logger.error(f"Failed to create client {request.client_name}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create client"
        )


@app.delete("/api/clients/{client_name}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_client(
    client_name: str,
    registry: ClientRegistry = Depends(get_registry),
    api_key: str = Depends(verify_api_key)
):
    """Revoke a client certificate."""
    try:
        await registry.delete(client_name)
        return MessageResponse(message="Client removed successfully")

    except NotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found"
        )
    except ClientRegistryError as e:
        step = getattr(e, "failed_step", None)
        logger.error(f"Failed to remove client {client_name} (step: {step}): {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove client"
        )


@app.get("/api/clients/{client_name}/config", response_model=ClientConfigResponse, responses=ERROR_RESPONSES)
async def get_client_config(
    client_name: str,
    registry: ClientRegistry = Depends(get_registry),
    api_key: str = Depends(verify_api_key)
):
    """Fetch a client's bundle, regenerating it if missing."""
    try:
        return ClientConfigResponse(config=await registry.fetch_config(client_name))

    except NotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found"
        )
    except ClientRegistryError as e:
        logger.error(f"Error getting client config for {client_name}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get client configuration"
        )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ovpn_admin.client_service.main:app",
        host="0.0.0.0",
        port=3000,
        log_level="info"
    )
