"""
Request Schemas for the Export Hub API

Each Pydantic model describes the body one endpoint accepts. Field aliases are
the camelCase names used on the wire and in the MongoDB documents:
- products collection <- ProductCreate / ProductUpdate
- imports collection  <- ImportCreate
- users collection    <- UserRegister / GoogleLogin / UserUpdate
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class ProductCreate(WireModel):
    product_name: str = Field(..., min_length=1, alias="productName", description="Product name")
    product_image: str = Field(..., min_length=1, alias="productImage", description="Image URL")
    price: float = Field(..., ge=0, allow_inf_nan=False, description="Unit price")
    origin_country: str = Field(..., min_length=1, alias="originCountry", description="Country of origin")
    rating: float = Field(..., ge=0, le=5, allow_inf_nan=False, description="Average rating")
    available_quantity: int = Field(..., ge=0, alias="availableQuantity", description="Units in stock")
    user_email: str = Field(..., min_length=1, alias="userEmail", description="Exporter email")
    user_name: Optional[str] = Field(None, alias="userName", description="Exporter display name")
    category: Optional[str] = Field(None, description="Product category")


class ProductUpdate(WireModel):
    product_name: Optional[str] = Field(None, min_length=1, alias="productName")
    product_image: Optional[str] = Field(None, min_length=1, alias="productImage")
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    origin_country: Optional[str] = Field(None, min_length=1, alias="originCountry")
    rating: Optional[float] = Field(None, ge=0, le=5, allow_inf_nan=False)
    available_quantity: Optional[int] = Field(None, ge=0, alias="availableQuantity")
    category: Optional[str] = None


class ImportCreate(WireModel):
    product_id: str = Field(..., min_length=1, alias="productId", description="Product document id as string")
    product_name: str = Field(..., min_length=1, alias="productName")
    product_image: Optional[str] = Field(None, alias="productImage")
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    rating: Optional[float] = Field(None, ge=0, le=5, allow_inf_nan=False)
    origin_country: Optional[str] = Field(None, alias="originCountry")
    imported_quantity: int = Field(..., gt=0, alias="importedQuantity", description="Units to import")
    user_email: str = Field(..., min_length=1, alias="userEmail", description="Importer email")
    user_name: Optional[str] = Field(None, alias="userName", description="Importer display name")

    def snapshot(self) -> dict:
        """Product display fields copied onto a new import record."""
        return {
            "productName": self.product_name,
            "productImage": self.product_image,
            "price": self.price,
            "rating": self.rating,
            "originCountry": self.origin_country,
        }


class UserRegister(WireModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    photo_url: Optional[str] = Field(None, alias="photoURL")


class LoginRequest(WireModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class GoogleLogin(WireModel):
    email: EmailStr
    name: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")
    google_id: Optional[str] = Field(None, alias="googleId")


class UserUpdate(WireModel):
    name: Optional[str] = Field(None, min_length=1)
    photo_url: Optional[str] = Field(None, alias="photoURL")
    password: Optional[str] = Field(None, min_length=6)
