from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .models import AddressLabel, Gender, OrderStatus, Role


# ----- Users & auth -----

# bcrypt refuses passwords longer than 72 bytes
PASSWORD_MAX_BYTES = 72


def _check_password_bytes(password: str) -> str:
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"password must be at most {PASSWORD_MAX_BYTES} bytes")
    return password


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, password):
        return _check_password_bytes(password)


class BusinessSignupRequest(SignupRequest):
    business_name: Optional[str] = Field(None, min_length=1, max_length=120)
    address: Optional[str] = Field(None, max_length=400)
    cuisine: List[str] = []
    opening_hours: Optional[str] = None
    description: Optional[str] = None


class DeliverySignupRequest(SignupRequest):
    phone: str = Field(..., min_length=1, max_length=30)
    vehicle: str = Field(..., min_length=1, max_length=60)
    license_number: Optional[str] = Field(None, max_length=60)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str]
    role: Role

    class Config:
        from_attributes = True


class UserRead(UserSummary):
    gender: Gender
    created_at: datetime


class UserBrief(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    token: str
    user: UserSummary


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    phone: Optional[str] = Field(None, max_length=30)
    gender: Optional[Gender] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, password):
        return _check_password_bytes(password)


class MessageResponse(BaseModel):
    message: str


class PasswordChanged(MessageResponse):
    token: str


# ----- Role profiles -----

class BusinessRead(BaseModel):
    id: int
    user_id: int
    name: str
    address: Optional[str]
    phone: Optional[str]
    description: Optional[str]
    cuisine: List[str]
    opening_hours: Optional[str]
    profile_image: Optional[str]

    class Config:
        from_attributes = True


class BusinessAdminRead(BusinessRead):
    owner: UserBrief


class BusinessUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    address: Optional[str] = Field(None, max_length=400)
    phone: Optional[str] = Field(None, max_length=30)
    description: Optional[str] = None
    cuisine: Optional[List[str]] = None
    opening_hours: Optional[str] = None
    profile_image: Optional[str] = None


class DeliveryPartnerRead(BaseModel):
    id: int
    user_id: int
    phone: str
    vehicle: str
    license_number: Optional[str]
    is_available: bool
    latitude: Optional[float]
    longitude: Optional[float]
    owner: UserBrief

    class Config:
        from_attributes = True


# ----- Addresses -----

class AddressCreate(BaseModel):
    label: AddressLabel = AddressLabel.home
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip: str = Field(..., min_length=1)
    country: str = "USA"
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    is_default: bool = False
    is_business_address: bool = False


class AddressUpdate(BaseModel):
    label: Optional[AddressLabel] = None
    street: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    zip: Optional[str] = Field(None, min_length=1)
    country: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    is_default: Optional[bool] = None
    is_business_address: Optional[bool] = None


class AddressRead(BaseModel):
    id: int
    user_id: int
    label: AddressLabel
    street: Optional[str]
    city: Optional[str]
    state: Optional[str]
    zip: Optional[str]
    country: str
    latitude: Optional[float]
    longitude: Optional[float]
    is_default: bool
    is_business_address: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AddressList(BaseModel):
    addresses: List[AddressRead]
    total: int


# ----- Catalog -----

class ProductBase(BaseModel):
    subcategory: Optional[str] = None
    image_url: Optional[str] = None
    calories: Optional[float] = Field(None, ge=0)
    protein: Optional[float] = Field(None, ge=0)
    carbohydrates: Optional[float] = Field(None, ge=0)
    fat: Optional[float] = Field(None, ge=0)
    fiber: Optional[float] = Field(None, ge=0)
    sugar: Optional[float] = Field(None, ge=0)
    sodium: Optional[float] = Field(None, ge=0)


class ProductCreate(ProductBase):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=80)
    is_available: bool = True
    preparation_time: int = Field(15, ge=0)
    allergens: List[str] = []
    ingredients: List[str] = []
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_spicy: bool = False
    spice_level: int = Field(0, ge=0, le=5)


class ProductUpdate(ProductBase):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1, max_length=80)
    is_available: Optional[bool] = None
    preparation_time: Optional[int] = Field(None, ge=0)
    allergens: Optional[List[str]] = None
    ingredients: Optional[List[str]] = None
    is_vegetarian: Optional[bool] = None
    is_vegan: Optional[bool] = None
    is_spicy: Optional[bool] = None
    spice_level: Optional[int] = Field(None, ge=0, le=5)


class ProductRead(ProductCreate):
    id: int
    business_id: int
    average_rating: float
    total_ratings: int
    rating_distribution: Dict[str, int]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int
    has_next_page: bool
    has_prev_page: bool


class ProductPage(BaseModel):
    products: List[ProductRead]
    pagination: Pagination


class ProductList(BaseModel):
    products: List[ProductRead]
    total: int


class ProductSearchResult(ProductList):
    query: str


# ----- Ratings -----

class RateProductRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(None, max_length=500)
    order_id: Optional[int] = None


class UpdateRatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(None, max_length=500)


class RatingRead(BaseModel):
    id: int
    product_id: int
    user: UserBrief
    rating: int
    review: Optional[str]
    order_id: Optional[int]
    is_verified: bool
    helpful: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RatingAggregate(BaseModel):
    average_rating: float
    total_ratings: int
    rating_distribution: Dict[str, int]

    class Config:
        from_attributes = True


class RatingPage(BaseModel):
    ratings: List[RatingRead]
    pagination: Pagination
    product_stats: RatingAggregate


class RatingStats(RatingAggregate):
    verified_ratings: int
    percentage_verified: float


class HelpfulResponse(BaseModel):
    helpful: int


# ----- Orders -----

class OrderItemRequest(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1)


class CreateOrderRequest(BaseModel):
    business_id: int
    items: List[OrderItemRequest]
    delivery_address_id: Optional[int] = None
    total_price: float = Field(..., ge=0)

    @field_validator("items")
    @classmethod
    def items_not_empty(cls, items):
        if not items:
            raise ValueError("An order needs at least one item")
        return items


class OrderItemRead(BaseModel):
    order_item_id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    order_id: int
    customer_id: int
    business_id: int
    delivery_partner_id: Optional[int]
    delivery_address_id: Optional[int]
    status: OrderStatus
    total_price: float
    items: List[OrderItemRead]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderAdminRead(OrderRead):
    customer: UserBrief


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class AssignOrderRequest(BaseModel):
    order_id: int
    delivery_partner_id: int
