import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./seledental.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Tokens are issued by the authentication service; we only verify them
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Frontend base URL (CORS)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:5173").split(",")

# Clinic calendar. All appointment times are civil times in this timezone.
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "America/Bogota")
CLINIC_OPENING = os.getenv("CLINIC_OPENING", "08:00")
CLINIC_CLOSING = os.getenv("CLINIC_CLOSING", "18:00")  # Last slot starts 30 min before closing
SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "30"))
APPOINTMENT_MINUTES = int(os.getenv("APPOINTMENT_MINUTES", "60"))

# Clients must cancel/reschedule more than this many hours ahead
CANCELLATION_NOTICE_HOURS = int(os.getenv("CANCELLATION_NOTICE_HOURS", "24"))

# Pagination defaults
PENDING_PAGE_SIZE = int(os.getenv("PENDING_PAGE_SIZE", "10"))
CLIENT_PAGE_SIZE = int(os.getenv("CLIENT_PAGE_SIZE", "50"))

# Booking rate limiting (per IP)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
BOOKING_RATE_LIMIT = int(os.getenv("BOOKING_RATE_LIMIT", "20"))
BOOKING_RATE_WINDOW_SECONDS = int(os.getenv("BOOKING_RATE_WINDOW_SECONDS", "60"))
