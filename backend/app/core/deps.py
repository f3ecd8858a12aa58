"""
Dependency Injection per il contesto della richiesta
Progetto: Garage Documents (Documenti Commerciali Officina)

La risoluzione dell'organizzazione è esterna al sistema: il gateway
davanti all'API inoltra l'header X-Organization-ID. In sua assenza
si usa l'organizzazione di default configurata.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import BusinessValidationError


async def get_organization_id(
    x_organization_id: Optional[str] = Header(
        None,
        alias="X-Organization-ID",
        description="UUID dell'organizzazione proprietaria dei documenti",
    ),
) -> uuid.UUID:
    """
    Dependency per ottenere l'organizzazione della richiesta.

    Args:
        x_organization_id: Valore dell'header X-Organization-ID

    Returns:
        UUID dell'organizzazione

    Raises:
        BusinessValidationError: Se l'header non contiene un UUID valido
    """
    if not x_organization_id:
        return settings.default_organization_id
    try:
        return uuid.UUID(x_organization_id)
    except ValueError:
        raise BusinessValidationError(
            "X-Organization-ID deve essere un UUID valido",
            extra={"field": "X-Organization-ID"},
        )


# Type aliases per uso comune
OrganizationId = Annotated[uuid.UUID, Depends(get_organization_id)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


__all__ = [
    "get_organization_id",
    "OrganizationId",
    "DbSession",
]
