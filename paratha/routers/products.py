from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..access import Capability, RequestContext
from ..deps import get_db, require
from ..services import catalog, ratings

router = APIRouter(prefix="/products", tags=["products"])

can_manage_catalog = require(Capability.manage_catalog)
can_rate = require(Capability.rate_products)

SortOrder = Literal["asc", "desc"]


# ----- Public catalog -----

@router.get("", response_model=schemas.ProductPage)
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    business_id: Optional[int] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    is_available: Optional[bool] = None,
    is_vegetarian: Optional[bool] = None,
    is_vegan: Optional[bool] = None,
    is_spicy: Optional[bool] = None,
    min_calories: Optional[float] = Query(None, ge=0),
    max_calories: Optional[float] = Query(None, ge=0),
    sort_by: str = "created_at",
    sort_order: SortOrder = "desc",
    db_sess: Session = Depends(get_db),
):
    products, pagination = catalog.list_products(
        db_sess,
        page=page,
        limit=limit,
        category=category,
        business_id=business_id,
        search=search,
        min_price=min_price,
        max_price=max_price,
        is_available=is_available,
        is_vegetarian=is_vegetarian,
        is_vegan=is_vegan,
        is_spicy=is_spicy,
        min_calories=min_calories,
        max_calories=max_calories,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return schemas.ProductPage(products=products, pagination=pagination)


@router.get("/categories", response_model=List[str])
def list_categories(db_sess: Session = Depends(get_db)):
    return catalog.categories(db_sess)


@router.get("/search", response_model=schemas.ProductSearchResult)
def search_products(
    q: str = Query(..., min_length=1),
    business_id: Optional[int] = None,
    category: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    db_sess: Session = Depends(get_db),
):
    products = catalog.search_products(db_sess, q, business_id=business_id, category=category, limit=limit)
    return schemas.ProductSearchResult(products=products, total=len(products), query=q)


@router.get("/business/{business_id}", response_model=schemas.ProductList)
def products_by_business(
    business_id: int,
    category: Optional[str] = None,
    is_available: Optional[bool] = None,
    sort_by: str = "name",
    sort_order: SortOrder = "asc",
    db_sess: Session = Depends(get_db),
):
    products = catalog.products_by_business(
        db_sess, business_id, category=category, is_available=is_available, sort_by=sort_by, sort_order=sort_order
    )
    return schemas.ProductList(products=products, total=len(products))


@router.get("/{product_id}", response_model=schemas.ProductRead)
def get_product(product_id: int, db_sess: Session = Depends(get_db)):
    return catalog.get_product(db_sess, product_id)


# ----- Business owned writes -----

@router.post("", response_model=schemas.ProductRead, status_code=201)
def add_product(
    payload: schemas.ProductCreate,
    ctx: RequestContext = Depends(can_manage_catalog),
    db_sess: Session = Depends(get_db),
):
    return catalog.add_product(db_sess, ctx, payload)


@router.put("/{product_id}", response_model=schemas.ProductRead)
def update_product(
    product_id: int,
    payload: schemas.ProductUpdate,
    ctx: RequestContext = Depends(can_manage_catalog),
    db_sess: Session = Depends(get_db),
):
    return catalog.update_product(db_sess, ctx, product_id, payload)


@router.delete("/{product_id}", response_model=schemas.MessageResponse)
def delete_product(
    product_id: int,
    ctx: RequestContext = Depends(can_manage_catalog),
    db_sess: Session = Depends(get_db),
):
    catalog.delete_product(db_sess, ctx, product_id)
    return schemas.MessageResponse(message="Product removed successfully")


# ----- Ratings -----

@router.post("/{product_id}/rate", response_model=schemas.RatingRead, status_code=201)
def rate_product(
    product_id: int,
    payload: schemas.RateProductRequest,
    ctx: RequestContext = Depends(can_rate),
    db_sess: Session = Depends(get_db),
):
    return ratings.rate_product(db_sess, ctx, product_id, payload)


@router.get("/{product_id}/ratings", response_model=schemas.RatingPage)
def list_ratings(
    product_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    rating: Optional[int] = Query(None, ge=1, le=5),
    verified: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: SortOrder = "desc",
    db_sess: Session = Depends(get_db),
):
    product = catalog.get_product(db_sess, product_id)
    items, pagination = ratings.list_ratings(
        db_sess,
        product,
        page=page,
        limit=limit,
        rating=rating,
        verified=verified,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return schemas.RatingPage(
        ratings=items,
        pagination=pagination,
        product_stats=schemas.RatingAggregate.model_validate(product),
    )


@router.get("/{product_id}/rating-stats", response_model=schemas.RatingStats)
def rating_stats(product_id: int, db_sess: Session = Depends(get_db)):
    product = catalog.get_product(db_sess, product_id)
    return ratings.rating_stats(db_sess, product)


@router.get("/{product_id}/ratings/my", response_model=schemas.RatingRead)
def get_my_rating(
    product_id: int,
    ctx: RequestContext = Depends(can_rate),
    db_sess: Session = Depends(get_db),
):
    return ratings.get_my_rating(db_sess, ctx, product_id)


@router.put("/{product_id}/ratings/my", response_model=schemas.RatingRead)
def update_my_rating(
    product_id: int,
    payload: schemas.UpdateRatingRequest,
    ctx: RequestContext = Depends(can_rate),
    db_sess: Session = Depends(get_db),
):
    return ratings.update_my_rating(db_sess, ctx, product_id, payload)


@router.delete("/{product_id}/ratings/my", response_model=schemas.MessageResponse)
def delete_my_rating(
    product_id: int,
    ctx: RequestContext = Depends(can_rate),
    db_sess: Session = Depends(get_db),
):
    ratings.delete_my_rating(db_sess, ctx, product_id)
    return schemas.MessageResponse(message="Rating deleted successfully")


@router.post("/{product_id}/ratings/{rating_id}/helpful", response_model=schemas.HelpfulResponse)
def mark_helpful(
    product_id: int,
    rating_id: int,
    ctx: RequestContext = Depends(can_rate),
    db_sess: Session = Depends(get_db),
):
    return schemas.HelpfulResponse(helpful=ratings.mark_helpful(db_sess, product_id, rating_id))
