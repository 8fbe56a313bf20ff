"""Configuration settings for the EcoWaste pickup backend."""
import logging
import os
from typing import Dict, List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "ecowaste"

    jwt_secret: str = "keyboardcat"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    payment_currency: str = "INR"
    payment_fallback_amount: float = 100

    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]


class PricingTable(BaseModel):
    """Fixed conversion and pricing tables used when a pickup is created."""

    unit_to_kg: Dict[str, float] = Field(
        default_factory=lambda: {"kg": 1, "bins/bags": 10, "ton": 1000}
    )
    points_per_kg: Dict[str, float] = Field(
        default_factory=lambda: {
            "general": 0,
            "recyclable": 1,
            "organic": 0.5,
            "electronic": 2,
            "hazardous": 1.5,
        }
    )
    co2_per_kg: Dict[str, float] = Field(
        default_factory=lambda: {
            "general": 0,
            "recyclable": 0.5,
            "organic": 0.3,
            "electronic": 1,
            "hazardous": 0.8,
        }
    )
    unit_price: Dict[str, float] = Field(
        default_factory=lambda: {
            "general": 50,
            "recyclable": 50,
            "organic": 40,
            "electronic": 100,
            "hazardous": 150,
        }
    )
    default_unit_price: float = 50
    discount_rate: float = 0.10


class PaymentSettings(BaseModel):
    key_id: str
    key_secret: str
    currency: str = "INR"
    fallback_amount: float = 100


def load_settings() -> Settings:
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
        database_name=os.getenv("DATABASE_NAME", "ecowaste"),
        jwt_secret=os.getenv("JWT_SECRET", "keyboardcat"),
        access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7)),
        razorpay_key_id=os.getenv("RAZORPAY_KEY_ID", ""),
        razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET", ""),
        payment_currency=os.getenv("PAYMENT_CURRENCY", "INR"),
        payment_fallback_amount=float(os.getenv("PAYMENT_FALLBACK_AMOUNT", 100)),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
    )


settings = load_settings()
pricing = PricingTable()


def get_settings() -> Settings:
    return settings


def get_pricing() -> PricingTable:
    return pricing


def get_payment_settings() -> PaymentSettings:
    return PaymentSettings(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        currency=settings.payment_currency,
        fallback_amount=settings.payment_fallback_amount,
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
