import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./plutify.db")

# "development", "staging" or "production"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_DEVELOPMENT = ENVIRONMENT in {"development", "dev"}
IS_PRODUCTION = ENVIRONMENT == "production"

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

JWT_ALGORITHM = "HS256"
JWT_EXPIRES_HOURS = int(os.getenv("JWT_EXPIRES_HOURS", "168"))  # 7 days

# Frontend base URL for redirects and email links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000"
).split(",")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Plutify <noreply@plutify.io>")

# Zapier / Ignition
ZAPIER_WEBHOOK_URL = os.getenv("ZAPIER_WEBHOOK_URL")
# Optional shared secret for inbound Zapier/Ignition callbacks (unset = accept unsigned)
ZAPIER_CALLBACK_SECRET = os.getenv("ZAPIER_CALLBACK_SECRET")
ZAPIER_TIMEOUT_SECONDS = float(os.getenv("ZAPIER_TIMEOUT_SECONDS", "10"))
ZAPIER_USER_AGENT = "Plutify-Backend/1.0"

# Questionnaire records are marked to expire this many minutes after the last submission
QUESTIONNAIRE_TTL_MINUTES = int(os.getenv("QUESTIONNAIRE_TTL_MINUTES", "15"))

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_PORTAL_RETURN_URL = os.getenv("STRIPE_PORTAL_RETURN_URL", f"{FRONTEND_URL}/billing")

# QuickBooks OAuth Configuration
QUICKBOOKS_ENVIRONMENT = os.getenv("QUICKBOOKS_ENVIRONMENT", "sandbox")  # sandbox or production
QUICKBOOKS_CLIENT_ID = os.getenv("QUICKBOOKS_CLIENT_ID")
QUICKBOOKS_CLIENT_SECRET = os.getenv("QUICKBOOKS_CLIENT_SECRET")
QUICKBOOKS_REDIRECT_URI = os.getenv(
    "QUICKBOOKS_REDIRECT_URI", f"{FRONTEND_URL}/auth/quickbooks/callback"
)

# Shopify OAuth Configuration
SHOPIFY_API_KEY = os.getenv("SHOPIFY_API_KEY")
SHOPIFY_API_SECRET = os.getenv("SHOPIFY_API_SECRET")
SHOPIFY_SCOPES = os.getenv("SHOPIFY_SCOPES", "read_orders,read_products")
SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2024-10")
SHOPIFY_REDIRECT_URI = os.getenv("SHOPIFY_REDIRECT_URI", f"{FRONTEND_URL}/auth/shopify/callback")

# Amazon SP-API (Login with Amazon) Configuration
AMAZON_APPLICATION_ID = os.getenv("AMAZON_APPLICATION_ID")
AMAZON_CLIENT_ID = os.getenv("AMAZON_CLIENT_ID")
AMAZON_CLIENT_SECRET = os.getenv("AMAZON_CLIENT_SECRET")
AMAZON_REDIRECT_URI = os.getenv("AMAZON_REDIRECT_URI", f"{FRONTEND_URL}/auth/amazon/callback")
AMAZON_SANDBOX = os.getenv("AMAZON_SANDBOX", "true").lower() == "true"
AMAZON_REGION_ENDPOINT = os.getenv(
    "AMAZON_REGION_ENDPOINT", "https://sellingpartnerapi-na.amazon.com"
)

# Redis / background jobs
REDIS_URL = os.getenv("REDIS_URL")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
