"""Gift catalog and recharge packages."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from livecast.schemas.view_model import RechargePackage
from livecast.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


class Gift(BaseModel):
    id: str
    name: str
    emoji: str
    price: int = Field(..., ge=0, description="Price in coins")

    model_config = ConfigDict(frozen=True)


DEFAULT_GIFTS: tuple[Gift, ...] = (
    Gift(id="rose", name="Rose", emoji="🌹", price=1),
    Gift(id="heart", name="Heart", emoji="❤️", price=5),
    Gift(id="fire", name="Fire", emoji="🔥", price=10),
    Gift(id="crown", name="Crown", emoji="👑", price=70),
    Gift(id="rocket", name="Rocket", emoji="🚀", price=350),
    Gift(id="lion", name="Lion", emoji="🦁", price=1000),
)

RECHARGE_PACKAGES: tuple[RechargePackage, ...] = (
    RechargePackage(coins=5, cost="$0.09"),
    RechargePackage(coins=70, cost="$0.99"),
    RechargePackage(coins=350, cost="$4.99"),
    RechargePackage(coins=700, cost="$9.99"),
    RechargePackage(coins=1400, cost="$19.99"),
    RechargePackage(coins=3500, cost="$49.99"),
    RechargePackage(coins=7000, cost="$99.99"),
)


class GiftCatalog:
    def __init__(self, gifts: tuple[Gift, ...] = DEFAULT_GIFTS):
        self._gifts = {gift.id: gift for gift in gifts}

    def get(self, gift_id: str) -> Gift:
        """
        Raises:
            AppError: E_GIFT_NOT_FOUND if the id is not in the catalog
        """
        gift = self._gifts.get(gift_id)
        if gift is None:
            raise AppError(
                errcode=AppErrorCode.E_GIFT_NOT_FOUND,
                errmesg=f"Unknown gift: {gift_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return gift

    def list(self) -> list[Gift]:
        return sorted(self._gifts.values(), key=lambda gift: gift.price)

    def packages_for(self, shortfall: int) -> tuple[RechargePackage, ...]:
        """Recharge packages large enough to cover `shortfall`, or all of them."""
        covering = tuple(pkg for pkg in RECHARGE_PACKAGES if pkg.coins >= shortfall)
        return covering or RECHARGE_PACKAGES
