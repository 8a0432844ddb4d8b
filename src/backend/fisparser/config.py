from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "FisParser"
    LOG_LEVEL: str = "INFO"

    # Amount validation
    TOTAL_AMOUNT_CEILING: Decimal = Decimal("10000")
    ITEM_SUM_TOLERANCE: Decimal = Decimal("0.50")
    TOLERANCE_INCLUSIVE: bool = True
    # Reconcile printed discount rows before comparing items with the total
    ITEM_SUM_SUBTRACT_DISCOUNTS: bool = False

    # Receipt age window for extracted dates
    MIN_RECEIPT_YEAR: int = 2020
    MAX_RECEIPT_YEAR: int = 2030

    # Sanitization limits
    MAX_TEXT_LENGTH: int = 1000
    MAX_STORE_NAME_LENGTH: int = 100
    MAX_ITEMS_TEXT_LENGTH: int = 500

    # Merchant header scan
    MERCHANT_SCAN_LINES: int = 5

    # Confidence
    CONFIDENCE_BASE: float = 0.9
    CONFIDENCE_WARNING_PENALTY: float = 0.1
    CONFIDENCE_ERROR_PENALTY: float = 0.3

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
