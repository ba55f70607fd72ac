"""/api/products - read-only product catalogue"""

from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query

from loan_origination.api.dependencies import get_current_user, get_product_service
from loan_origination.api.v1.schemas import CountResponse, ProductResponse
from loan_origination.infrastructure.database.models import Product
from loan_origination.services.products import ProductService

router = APIRouter(dependencies=[Depends(get_current_user)])


def to_product_response(product: Product) -> ProductResponse:
    return ProductResponse(
        id=product.id,
        code=product.code,
        name=product.name,
        product_type=product.product_type,
        min_amount=product.min_amount,
        max_amount=product.max_amount,
        tenure_month=product.tenure_month,
        interest_rate=product.interest_rate,
        status_code=product.status_code,
    )


def _to_responses(products: List[Product]) -> List[ProductResponse]:
    return [to_product_response(p) for p in products]


@router.get("", response_model=List[ProductResponse])
def list_products(products: ProductService = Depends(get_product_service)):
    return _to_responses(products.list_all())


@router.get("/active", response_model=List[ProductResponse])
def list_active_products(products: ProductService = Depends(get_product_service)):
    return _to_responses(products.list_active())


@router.get("/active/count", response_model=CountResponse)
def count_active_products(products: ProductService = Depends(get_product_service)):
    return CountResponse(count=products.count_active())


@router.get("/search", response_model=List[ProductResponse])
def search_products(term: str = Query(..., min_length=1), products: ProductService = Depends(get_product_service)):
    return _to_responses(products.search(term))


@router.get("/for-amount", response_model=List[ProductResponse])
def products_for_amount(amount: Decimal = Query(..., gt=0), products: ProductService = Depends(get_product_service)):
    return _to_responses(products.list_for_amount(amount))


@router.get("/type/{product_type}", response_model=List[ProductResponse])
def products_by_type(product_type: str, products: ProductService = Depends(get_product_service)):
    return _to_responses(products.list_by_type(product_type))


@router.get("/code/{code}", response_model=ProductResponse)
def get_product_by_code(code: str, products: ProductService = Depends(get_product_service)):
    return to_product_response(products.get_by_code(code))


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: int, products: ProductService = Depends(get_product_service)):
    return to_product_response(products.get(product_id))
