"""Client routes - platform registration"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from social_wallet.api.deps import get_current_admin_user
from social_wallet.core.database import get_db
from social_wallet.models.user import User
from social_wallet.schemas.client import ClientCreate, ClientCredentials
from social_wallet.services.audit_service import CLIENT_REGISTERED, AuditService
from social_wallet.services.client_service import ClientService

router = APIRouter()


@router.post("/register", response_model=ClientCredentials, status_code=status.HTTP_201_CREATED)
def register_client(
    body: ClientCreate,
    request: Request,
    admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    """
    Register a platform

    The client secret is only shown in this response.
    """
    credentials = ClientService(db).register_client(body)
    AuditService(db).log_event(
        user_id=admin.id,
        action=CLIENT_REGISTERED,
        target_type="api_client",
        target_id=credentials["client_id"],
        ip_address=request.client.host if request.client else "unknown",
        metadata={"tier": credentials["subscription_tier"]},
    )
    return credentials
