# app/services/catalog_service.py
import uuid
from datetime import datetime, timezone

from sqlmodel import Session

from app.core.errors import NotFound, ReferentialConflict
from app.models.catalog import Item, ItemVariant
from app.repositories.catalog_repo import CatalogRepository
from app.schemas.catalog import (
    ItemCreate,
    ItemRead,
    ItemUpdate,
    VariantCreate,
    VariantRead,
    VariantUpdate,
)


class CatalogService:
    """
    Business logic for items and their variants.

    Order lines keep a snapshot of name/unit/price, but still reference
    the variant row; such variants can be edited, never deleted.
    """

    def __init__(self, repo: CatalogRepository):
        self.repo = repo

    # ----- Helpers -----

    def _get_item(self, session: Session, item_id: uuid.UUID) -> Item:
        item = self.repo.get_item(session, item_id)
        if not item:
            raise NotFound("Item not found")
        return item

    @staticmethod
    def _to_read(item: Item, variants: list[ItemVariant]) -> ItemRead:
        return ItemRead(
            id=item.id,
            name=item.name,
            description=item.description,
            category=item.category,
            in_stock=item.in_stock,
            created_at=item.created_at,
            updated_at=item.updated_at,
            variants=[
                VariantRead(
                    id=v.id,
                    item_id=v.item_id,
                    quantity_unit=v.quantity_unit,
                    price=v.price,
                    stock=v.stock,
                )
                for v in sorted(variants, key=lambda v: v.price)
            ],
        )

    # ----- Items -----

    def list_items(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_in_stock: bool = False,
        category: str | None = None,
    ) -> list[ItemRead]:
        items = self.repo.list_items(
            session,
            skip=skip,
            limit=limit,
            only_in_stock=only_in_stock,
            category=category,
        )
        variants_by_item: dict[uuid.UUID, list[ItemVariant]] = {}
        for v in self.repo.list_variants_for_items(session, [i.id for i in items]):
            variants_by_item.setdefault(v.item_id, []).append(v)
        return [self._to_read(i, variants_by_item.get(i.id, [])) for i in items]

    def get_item(self, session: Session, item_id: uuid.UUID) -> ItemRead:
        item = self._get_item(session, item_id)
        return self._to_read(item, self.repo.list_variants(session, item.id))

    def create_item(self, session: Session, payload: ItemCreate) -> ItemRead:
        item = self.repo.save_item(
            session,
            Item(
                name=payload.name,
                description=payload.description,
                category=payload.category,
                in_stock=payload.in_stock,
            ),
        )
        for v in payload.variants:
            self.repo.save_variant(
                session,
                ItemVariant(
                    item_id=item.id,
                    quantity_unit=v.quantity_unit,
                    price=v.price,
                    stock=v.stock,
                ),
            )
        return self.get_item(session, item.id)

    def update_item(
        self,
        session: Session,
        item_id: uuid.UUID,
        payload: ItemUpdate,
    ) -> ItemRead:
        item = self._get_item(session, item_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(item, field, value)
        item.updated_at = datetime.now(timezone.utc)
        self.repo.save_item(session, item)
        return self.get_item(session, item.id)

    def delete_item(self, session: Session, item_id: uuid.UUID) -> None:
        """
        Remove an item and its variants.

        Raises:
            NotFound
            ReferentialConflict: any of its variants appears in an order.
        """
        item = self._get_item(session, item_id)
        if self.repo.item_is_referenced(session, item.id):
            raise ReferentialConflict(
                "Item is referenced by existing orders; mark it out of stock instead"
            )
        self.repo.delete_item(session, item)

    # ----- Variants -----

    def add_variant(
        self,
        session: Session,
        item_id: uuid.UUID,
        payload: VariantCreate,
    ) -> ItemRead:
        item = self._get_item(session, item_id)
        self.repo.save_variant(
            session,
            ItemVariant(
                item_id=item.id,
                quantity_unit=payload.quantity_unit,
                price=payload.price,
                stock=payload.stock,
            ),
        )
        return self.get_item(session, item.id)

    def update_variant(
        self,
        session: Session,
        item_id: uuid.UUID,
        variant_id: uuid.UUID,
        payload: VariantUpdate,
    ) -> ItemRead:
        """
        Edit unit, price or stock. Order lines keep their snapshot, so
        existing orders are unaffected.
        """
        variant = self.repo.get_variant(session, variant_id)
        if not variant or variant.item_id != item_id:
            raise NotFound("Variant not found")
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(variant, field, value)
        self.repo.save_variant(session, variant)
        return self.get_item(session, item_id)

    def delete_variant(
        self,
        session: Session,
        item_id: uuid.UUID,
        variant_id: uuid.UUID,
    ) -> None:
        """
        Remove a variant that no order line references.

        Raises:
            NotFound: variant does not belong to the item.
            ReferentialConflict: variant appears in an existing order.
        """
        variant = self.repo.get_variant(session, variant_id)
        if not variant or variant.item_id != item_id:
            raise NotFound("Variant not found")
        if self.repo.variant_is_referenced(session, variant.id):
            raise ReferentialConflict(
                "Variant is referenced by existing orders; edit it "
                "(PATCH its price, unit or stock) or mark the item out of stock "
                "instead of deleting it"
            )
        self.repo.delete_variant(session, variant)
