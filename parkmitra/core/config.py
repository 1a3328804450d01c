import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./parkmitra.db")
REDIS_URL = os.getenv("REDIS_URL")

LOG_DIR = os.getenv("LOG_DIR", "logs")

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# -------- BOOKING POLICY --------
MIN_BOOKING_HOURS = int(os.getenv("MIN_BOOKING_HOURS", 1))
MAX_BOOKING_HOURS = int(os.getenv("MAX_BOOKING_HOURS", 24))
PENALTY_MULTIPLIER = float(os.getenv("PENALTY_MULTIPLIER", 2.0))

# -------- DATABASE STARTUP --------
DB_CONNECT_RETRIES = int(os.getenv("DB_CONNECT_RETRIES", 5))
DB_CONNECT_BACKOFF_SECONDS = float(os.getenv("DB_CONNECT_BACKOFF_SECONDS", 1.0))

AVAILABILITY_CACHE_TTL = int(os.getenv("AVAILABILITY_CACHE_TTL", 30))
