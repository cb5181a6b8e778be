"""Exceptions raised by ShopForge domain services."""


class ShopForgeError(RuntimeError):
    """Base class for domain exceptions."""


class ValidationError(ShopForgeError):
    """Raised on malformed numeric or date input."""


class NotFound(ShopForgeError):
    """Base class for missing records."""


class BannerNotFound(NotFound):
    def __init__(self, banner_id: int) -> None:
        super().__init__(f"Banner {banner_id} not found")
        self.banner_id = banner_id


class ItemNotFound(NotFound):
    def __init__(self, item_id: int) -> None:
        super().__init__(f"Item {item_id} not found")
        self.item_id = item_id


class RarityPriceNotFound(NotFound):
    pass


class CatalogEntityNotFound(NotFound):
    def __init__(self, catalog_id: int) -> None:
        super().__init__(f"Catalog entity {catalog_id} not found")
        self.catalog_id = catalog_id


class BannerInactive(ShopForgeError):
    """Raised when a banner is not in the offering status."""


class BannerOutOfWindow(ShopForgeError):
    """Raised when the current time falls outside the banner's date window."""


class CapacityExceeded(ShopForgeError):
    def __init__(self, banner_id: int, current: int, incoming: int, maximum: int) -> None:
        super().__init__(
            f"Banner {banner_id} holds {current} items; adding {incoming} exceeds max {maximum}"
        )
        self.banner_id = banner_id
        self.current = current
        self.incoming = incoming
        self.maximum = maximum


class DuplicateItem(ShopForgeError):
    def __init__(self, banner_id: int, catalog_ids: tuple[int, ...] = ()) -> None:
        detail = ", ".join(str(cid) for cid in catalog_ids) if catalog_ids else "unknown"
        super().__init__(f"Banner {banner_id} already offers catalog entities: {detail}")
        self.banner_id = banner_id
        self.catalog_ids = catalog_ids


class RarityPriceConflict(ShopForgeError):
    """Raised when a second live price entry would be created for a rarity."""


class StorageFailure(ShopForgeError):
    """Generic internal failure wrapping an unexpected storage error."""
