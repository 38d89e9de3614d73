"""Lookups against the outlet registry consumed by the order and payment core."""
from dataclasses import dataclass
from uuid import UUID

from app.core.exceptions import InvalidInput, NotFound
from app.models.outlet import Outlet


@dataclass(frozen=True)
class GatewayCredentials:
    key_id: str
    key_secret: str


async def get_active_outlet(outlet_id: UUID, conn=None) -> Outlet:
    outlet = await Outlet.get_or_none(id=outlet_id).using_db(conn)
    if not outlet or not outlet.is_active:
        raise NotFound("Outlet not found or inactive")
    return outlet


async def is_active(outlet_id: UUID) -> bool:
    return await Outlet.filter(id=outlet_id, is_active=True).exists()


def credentials_for(outlet: Outlet) -> GatewayCredentials:
    """
    Gateway credentials of exactly this outlet. There is no global default key:
    an outlet without configured credentials cannot take gateway payments.
    """
    if not outlet.gateway_key_id or not outlet.gateway_key_secret:
        raise InvalidInput(f"Payment gateway is not configured for {outlet.name}")
    return GatewayCredentials(key_id=outlet.gateway_key_id, key_secret=outlet.gateway_key_secret)

