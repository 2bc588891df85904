"""Role based access control.

Every role maps to a fixed set of capabilities; routes declare the
capability they need and ``ensure`` is the only place roles are compared.
Ownership of individual resources is still checked by the services.
"""
import enum
from dataclasses import dataclass

from . import errors
from .models import Role


class Capability(str, enum.Enum):
    manage_profile = "manage_profile"
    manage_addresses = "manage_addresses"
    rate_products = "rate_products"
    place_orders = "place_orders"
    manage_catalog = "manage_catalog"
    view_business_orders = "view_business_orders"
    deliver_orders = "deliver_orders"
    administer = "administer"
    assign_orders = "assign_orders"
    override_order_status = "override_order_status"


_COMMON = frozenset({
    Capability.manage_profile,
    Capability.manage_addresses,
    Capability.rate_products,
})

CAPABILITIES = {
    Role.customer: _COMMON | {Capability.place_orders},
    Role.business: _COMMON | {Capability.manage_catalog, Capability.view_business_orders},
    Role.delivery: _COMMON | {Capability.deliver_orders},
    Role.admin: _COMMON | {
        Capability.administer,
        Capability.assign_orders,
        Capability.override_order_status,
    },
}


@dataclass(frozen=True)
class RequestContext:
    """Who is calling, passed explicitly into every service call."""

    user_id: int
    role: Role
    correlation_id: str = "-"

    def can(self, capability: Capability) -> bool:
        return capability in CAPABILITIES[self.role]

    @property
    def log_extra(self):
        return {"correlation_id": self.correlation_id}


def ensure(ctx: RequestContext, capability: Capability):
    if not ctx.can(capability):
        raise errors.Forbidden(f"Role '{ctx.role.value}' may not {capability.value.replace('_', ' ')}")
