"""Read-only access to the loan product catalogue"""

from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from loan_origination.domain.exceptions import NotFoundError
from loan_origination.domain.models import RecordStatus
from loan_origination.infrastructure.database.models import Product
from loan_origination.infrastructure.database.repositories import ProductRepository
from loan_origination.utils.money import round_money, to_decimal


class ProductService:
    def __init__(self, db: Session):
        self.products = ProductRepository(db)

    def list_all(self) -> List[Product]:
        return self.products.list_all()

    def list_active(self) -> List[Product]:
        return self.products.list_by_status(RecordStatus.ACTIVE.value)

    def get(self, product_id: int) -> Product:
        product = self.products.get(product_id)
        if product is None:
            raise NotFoundError(f"Product not found with ID: {product_id}")
        return product

    def get_by_code(self, code: str) -> Product:
        product = self.products.get_by_code(code)
        if product is None:
            raise NotFoundError(f"Product not found with code: {code}")
        return product

    def list_by_type(self, product_type: str) -> List[Product]:
        return self.products.list_by_type(product_type)

    def search(self, term: str) -> List[Product]:
        """ACTIVE products whose code or name contains `term`, case-insensitive"""
        return self.products.search_active(term)

    def list_for_amount(self, amount: Decimal) -> List[Product]:
        """ACTIVE products whose [min_amount, max_amount] contains `amount`"""
        return self.products.list_active_for_amount(round_money(to_decimal(amount)))

    def count_active(self) -> int:
        return self.products.count_by_status(RecordStatus.ACTIVE.value)
