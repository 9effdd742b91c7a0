import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bookkeeping.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Invoice numbers look like INV-2026-0001
INVOICE_PREFIX = os.getenv("INVOICE_PREFIX", "INV").strip().upper() or "INV"
DEFAULT_PAYMENT_TERMS_DAYS = int(os.getenv("DEFAULT_PAYMENT_TERMS_DAYS", "30"))

DEFAULT_CURRENCY = "GBP"
SUPPORTED_CURRENCIES = ("GBP", "EUR", "USD")

DEFAULT_LANGUAGE = "en"
SUPPORTED_LANGUAGES = ("en", "tr")
