import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./rzev.db")

# Supabase Auth - tokens are HS256 JWTs signed with the project JWT secret
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")
AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "supabase-auth")
if not SUPABASE_JWT_SECRET:
    import warnings

    warnings.warn(
        "SUPABASE_JWT_SECRET not set! Authenticated endpoints will reject every request",
        RuntimeWarning,
        stacklevel=2,
    )

# Public app URL used in invitation links and Stripe redirects
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Rzev <noreply@rzev.ai>")

# Sendo SMS Configuration
SENDO_API_URL = os.getenv("SENDO_API_URL", "https://api.sendo.dev/v1/message/send")
SENDO_API_KEY = os.getenv("SENDO_API_KEY")
SENDO_CAMPAIGN_ID = os.getenv("SENDO_CAMPAIGN_ID")
SENDO_FROM_NUMBER = os.getenv("SENDO_FROM_NUMBER")  # Optional

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_CONNECT_WEBHOOK_SECRET = os.getenv("STRIPE_CONNECT_WEBHOOK_SECRET")

# Google Maps (address validation)
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")

# Rate limiting for public endpoints
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# CORS and response hardening
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", f"{APP_URL},https://rzev.ai,https://www.rzev.ai").split(",")
    if origin.strip()
]
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
