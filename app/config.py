import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./rightartist.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Bearer tokens are issued by the identity provider and verified here
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Frontend base URL for redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3001")

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:5173").split(",")

# Cloudflare R2 Configuration (blob storage). Without credentials uploads go to UPLOAD_DIR.
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "rightartist")
R2_PUBLIC_BASE_URL = os.getenv("R2_PUBLIC_BASE_URL")
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
WATERMARK_TEXT = os.getenv("WATERMARK_TEXT", "SPCapital ©")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

# Card payment gateway (TransactAPI)
PAYMENT_GATEWAY_URL = os.getenv(
    "PAYMENT_GATEWAY_URL", "https://payment.ipospays.tech/api/v1/iposTransact"
)
PAYMENT_MERCHANT_ID = os.getenv("PAYMENT_MERCHANT_ID")
PAYMENT_GATEWAY_TOKEN = os.getenv("PAYMENT_GATEWAY_TOKEN")
PAYMENT_TIMEOUT_SECONDS = float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "30"))

# Monthly subscription prices that unlock posting for shop tiers
SUBSCRIPTION_PRICES = {
    "shop": float(os.getenv("SHOP_SUBSCRIPTION_PRICE", "24.99")),
    "elite": float(os.getenv("ELITE_SUBSCRIPTION_PRICE", "50.00")),
}

# Designers keep this share of each design sale
DESIGNER_PAYOUT_RATE = float(os.getenv("DESIGNER_PAYOUT_RATE", "0.9"))
TOP_DESIGNER_SALES = int(os.getenv("TOP_DESIGNER_SALES", "10"))

# Google Calendar OAuth Configuration
# OAuth flow: Google → Frontend → Frontend sends code to Backend API
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{FRONTEND_URL}/settings/calendar")
APPOINTMENT_DURATION_MINUTES = int(os.getenv("APPOINTMENT_DURATION_MINUTES", "60"))

# Rate limiting (Redis is optional - counters stay in memory without it)
REDIS_URL = os.getenv("REDIS_URL")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
COMMENT_RATE_LIMIT = int(os.getenv("COMMENT_RATE_LIMIT", "30"))
MESSAGE_RATE_LIMIT = int(os.getenv("MESSAGE_RATE_LIMIT", "60"))
