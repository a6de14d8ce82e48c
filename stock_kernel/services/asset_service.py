"""
Service layer for the asset register.

Assets are individually numbered durable goods.  They never touch the
stock ledger.  Lifecycle: active -> discarded, once.

Returns AssetInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select

from stock_kernel.db.types import ensure_utc
from stock_kernel.domain.actor import ActorContext
from stock_kernel.exceptions import (
    AssetAlreadyDiscardedError,
    AssetNotFoundError,
    DuplicateAssetNumberError,
    InvalidFieldError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.asset import Asset, AssetStatus
from stock_kernel.services.base import BaseService

logger = get_logger("services.assets")


@dataclass(frozen=True)
class AssetInfo:
    """Immutable DTO for an asset."""

    id: UUID
    item_number: str
    item_name: str
    item_type: str
    purchase_date: date
    purchase_price: Decimal
    current_location: str
    status: AssetStatus
    discard_reason: str | None
    discard_date: datetime | None

    @property
    def is_active(self) -> bool:
        return self.status == AssetStatus.ACTIVE


def to_asset_info(asset: Asset) -> AssetInfo:
    return AssetInfo(
        id=asset.id,
        item_number=asset.item_number,
        item_name=asset.item_name,
        item_type=asset.item_type,
        purchase_date=asset.purchase_date,
        purchase_price=Decimal(asset.purchase_price),
        current_location=asset.current_location,
        status=AssetStatus(asset.status),
        discard_reason=asset.discard_reason,
        discard_date=ensure_utc(asset.discard_date),
    )


def _require_text(field: str, value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidFieldError(field, "must be a non-empty string")
    return value.strip()


def _parse_price(value: Decimal | int | str) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidFieldError("purchase_price", f"not a number: {value!r}") from None
    if not price.is_finite() or price < 0:
        raise InvalidFieldError("purchase_price", "must be zero or more")
    return price.quantize(Decimal("0.01"))


class AssetService(BaseService[Asset]):
    """Register, relocate and discard assets.  Admin only."""

    def _get_by_id(self, asset_id: UUID, lock: bool = False) -> Asset:
        stmt = select(Asset).where(Asset.id == asset_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        asset = self.session.execute(stmt).scalar_one_or_none()
        if asset is None:
            raise AssetNotFoundError(str(asset_id))
        return asset

    def get(self, asset_id: UUID) -> AssetInfo:
        return to_asset_info(self._get_by_id(asset_id))

    def register(
        self,
        actor: ActorContext,
        item_number: str,
        item_name: str,
        item_type: str,
        purchase_date: date,
        purchase_price: Decimal | int | str,
        current_location: str,
    ) -> AssetInfo:
        """
        Add an asset to the register.

        Raises:
            PermissionDeniedError, InvalidFieldError, DuplicateAssetNumberError.
        """
        actor.require_admin("register assets")
        number = _require_text("item_number", item_number)
        name = _require_text("item_name", item_name)
        kind = _require_text("item_type", item_type)
        location = _require_text("current_location", current_location)
        price = _parse_price(purchase_price)
        if not isinstance(purchase_date, date):
            raise InvalidFieldError("purchase_date", "must be a date")

        taken = self.session.execute(
            select(Asset.id).where(Asset.item_number == number)
        ).first()
        if taken is not None:
            raise DuplicateAssetNumberError(number)

        asset = Asset(
            item_number=number,
            item_name=name,
            item_type=kind,
            purchase_date=purchase_date,
            purchase_price=price,
            current_location=location,
            status=AssetStatus.ACTIVE.value,
            created_by_id=actor.user_id,
        )
        self.session.add(asset)
        self.session.flush()

        logger.info(
            "asset_registered",
            extra={"asset_id": str(asset.id), "item_number": number},
        )
        return to_asset_info(asset)

    def relocate(self, actor: ActorContext, asset_id: UUID, new_location: str) -> AssetInfo:
        """
        Raises:
            PermissionDeniedError, InvalidFieldError, AssetNotFoundError,
            AssetAlreadyDiscardedError.
        """
        actor.require_admin("relocate assets")
        location = _require_text("current_location", new_location)

        asset = self._get_by_id(asset_id, lock=True)
        if asset.status != AssetStatus.ACTIVE:
            raise AssetAlreadyDiscardedError(str(asset_id), "relocate")

        previous = asset.current_location
        asset.current_location = location
        asset.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "asset_relocated",
            extra={
                "asset_id": str(asset_id),
                "from_location": previous,
                "to_location": location,
            },
        )
        return to_asset_info(asset)

    def discard(self, actor: ActorContext, asset_id: UUID, reason: str) -> AssetInfo:
        """
        Mark an active asset discarded.  Terminal.

        Raises:
            PermissionDeniedError, InvalidFieldError, AssetNotFoundError,
            AssetAlreadyDiscardedError.
        """
        actor.require_admin("discard assets")
        discard_reason = _require_text("discard_reason", reason)

        asset = self._get_by_id(asset_id, lock=True)
        if asset.status != AssetStatus.ACTIVE:
            raise AssetAlreadyDiscardedError(str(asset_id), "discard")

        asset.status = AssetStatus.DISCARDED.value
        asset.discard_reason = discard_reason
        asset.discard_date = self.clock.now()
        asset.updated_by_id = actor.user_id
        self.session.flush()

        logger.info("asset_discarded", extra={"asset_id": str(asset_id)})
        return to_asset_info(asset)
