"""
Application Configuration
Load settings from environment variables
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Database Configuration
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", 3306))
DB_USER = os.getenv("DB_USER", "root")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_NAME = os.getenv("DB_NAME", "gym_attendance")

# Auth Configuration (tokens are issued by the hosted auth service)
AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET", "your-secret-key-change-in-production")
AUTH_JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")

# Attendance Settings
ANTI_PASSBACK_MINUTES = int(os.getenv("ANTI_PASSBACK_MINUTES", 10))
EXPIRING_SOON_DAYS = int(os.getenv("EXPIRING_SOON_DAYS", 7))
RENEWAL_REDIRECT_TEMPLATE = os.getenv("RENEWAL_REDIRECT_TEMPLATE", "/b/{branch_id}/renew")
DEFAULT_LOG_PAGE_SIZE = int(os.getenv("DEFAULT_LOG_PAGE_SIZE", 50))
MAX_LOG_PAGE_SIZE = int(os.getenv("MAX_LOG_PAGE_SIZE", 200))
INSIGHTS_DEFAULT_DAYS = int(os.getenv("INSIGHTS_DEFAULT_DAYS", 30))

# PT Planner Settings
PT_MAX_MONTHS = int(os.getenv("PT_MAX_MONTHS", 3))
PT_DAYS_PER_MONTH = int(os.getenv("PT_DAYS_PER_MONTH", 30))

# WhatsApp Gateway Configuration
ADMIN_WHATSAPP_NUMBER = os.getenv("ADMIN_WHATSAPP_NUMBER", "")
PERISKOPE_API_KEY = os.getenv("PERISKOPE_API_KEY", "")
PERISKOPE_PHONE = os.getenv("PERISKOPE_PHONE", "")
WHATSAPP_API_URL = os.getenv("WHATSAPP_API_URL", "https://api.periskope.app/v1/message/send")
WHATSAPP_TIMEOUT_SECONDS = int(os.getenv("WHATSAPP_TIMEOUT_SECONDS", 20))
DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "91")

# Scheduler Settings
SUBSCRIPTION_REFRESH_HOUR = int(os.getenv("SUBSCRIPTION_REFRESH_HOUR", 0))
SUBSCRIPTION_REFRESH_MINUTE = int(os.getenv("SUBSCRIPTION_REFRESH_MINUTE", 5))

# Application Settings
APP_NAME = os.getenv("APP_NAME", "Gym Attendance API")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", 8002))
