"""
Category Service

Custom categories are always expense categories. The system income and
transfer rows and the catalog categories seeded at onboarding are flagged
is_default and are read-only.
"""

from typing import Optional

from mitsitsy.identifiers import generate_id
from mitsitsy.models.events import LedgerEventBuilder
from mitsitsy.models.ledger import Category, CategoryType, SyncStatus, utc_now
from mitsitsy.models.results import OperationResult
from mitsitsy.services.base import LedgerService
from mitsitsy.services.errors import LedgerValidationError, LimitReachedError, NotFoundError
from mitsitsy.services.storage import CategoryRepository
from mitsitsy.validation import LedgerValidator, ensure_valid


DEFAULT_CUSTOM_COLOR = "#95A5A6"
DEFAULT_CUSTOM_ICON = "pricetag"


class CategoryService(LedgerService):
    """Category listing and custom category management."""

    def __init__(self, db, settings=None, event_logger=None):
        super().__init__(db, settings, event_logger)
        self._categories = CategoryRepository(db)
        self._validator = LedgerValidator(categories=self._categories)

    async def list_categories(self, include_system: bool = True) -> list[Category]:
        """Live categories by name. Pickers pass include_system=False."""
        categories = await self._categories.list_all()
        if include_system:
            return categories
        return [c for c in categories if not c.is_system]

    async def get_category(self, category_id: str) -> Optional[Category]:
        return await self._categories.get(category_id)

    async def create_category(
        self,
        name: str,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> OperationResult:
        """
        Create a custom expense category.

        Returns:
            OperationResult with the new id, LIMIT_REACHED at the configured cap
        """
        async def action() -> OperationResult:
            ensure_valid(self._validator.check_text(name, "name"))

            category = Category(
                id=generate_id(),
                name=name,
                icon=icon or DEFAULT_CUSTOM_ICON,
                color=color or DEFAULT_CUSTOM_COLOR,
                is_default=False,
                category_type=CategoryType.EXPENSE,
                sync_status=SyncStatus.PENDING,
            )

            async with self._db.transaction():
                if await self._categories.count_custom() >= self._settings.max_custom_categories:
                    raise LimitReachedError(
                        f"You can create at most {self._settings.max_custom_categories} custom categories"
                    )
                await self._categories.insert(category)

            await self._events.log(LedgerEventBuilder.category_created(category.id, category.name))
            return OperationResult.ok(category.id)

        return await self._guard("create_category", action, {"name": name})

    async def delete_category(self, category_id: str) -> OperationResult:
        """
        Soft-delete a custom category.

        Transactions keep pointing at it so history still shows the name.
        """
        async def action() -> OperationResult:
            async with self._db.transaction():
                category = await self._categories.get(category_id)
                if category is None:
                    raise NotFoundError("category", category_id)
                if category.is_default:
                    raise LedgerValidationError("Default and system categories cannot be deleted")
                await self._categories.soft_delete(category_id, utc_now())

            await self._events.log(LedgerEventBuilder.category_deleted(category_id))
            return OperationResult.ok(category_id)

        return await self._guard("delete_category", action, {"category_id": category_id})

    async def can_create_category(self) -> bool:
        return await self._categories.count_custom() < self._settings.max_custom_categories
