"""Product price and availability lookup used when pricing new orders."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable

from django.conf import settings
from django.utils.module_loading import import_string

from .models import Product


@dataclass(frozen=True)
class ProductSnapshot:
    """Price and availability of a product at the moment it was looked up"""

    price: Decimal
    available: bool


class CatalogReader:
    """
    Batch lookup of product id -> ProductSnapshot.

    Implementations return entries only for ids that exist; unknown ids are
    simply absent from the result.
    """

    def lookup(self, product_ids: Iterable[int]) -> Dict[int, ProductSnapshot]:
        raise NotImplementedError


class DatabaseCatalogReader(CatalogReader):
    """Reads the local Product table in a single query"""

    def lookup(self, product_ids: Iterable[int]) -> Dict[int, ProductSnapshot]:
        ids = set(product_ids)
        if not ids:
            return {}

        rows = Product.objects.filter(id__in=ids).values_list('id', 'price', 'available')
        return {
            product_id: ProductSnapshot(price=price, available=available)
            for product_id, price, available in rows
        }


def get_catalog_reader() -> CatalogReader:
    """Instantiate the reader named by settings.CATALOG_READER"""
    reader_class = import_string(settings.CATALOG_READER)
    return reader_class()
