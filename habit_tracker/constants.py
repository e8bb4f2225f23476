"""
Application constants.
Cadence table, scoring values, rank tables and runtime defaults.
"""
import os

# Frequencies
FREQUENCY_DAILY = "daily"
FREQUENCY_TWICE_WEEKLY = "2x_week"
FREQUENCY_THRICE_WEEKLY = "3x_week"
FREQUENCY_WEEKLY = "weekly"
FREQUENCY_MONTHLY = "monthly"

FREQUENCIES = (
    FREQUENCY_DAILY,
    FREQUENCY_TWICE_WEEKLY,
    FREQUENCY_THRICE_WEEKLY,
    FREQUENCY_WEEKLY,
    FREQUENCY_MONTHLY,
)

# Days a check-in may trail the previous one before it counts as late
# (grace days are added on top of this).
ALLOWED_GAP_DAYS = {
    FREQUENCY_DAILY: 1,
    FREQUENCY_THRICE_WEEKLY: 3,
    FREQUENCY_TWICE_WEEKLY: 4,
    FREQUENCY_WEEKLY: 7,
    FREQUENCY_MONTHLY: 30,
}

# Modes
MODE_FLEXIBLE = "flexible"
MODE_STRICT = "strict"

MODES = (MODE_FLEXIBLE, MODE_STRICT)

PENALTY_MULTIPLIERS = {
    MODE_FLEXIBLE: 0.5,
    MODE_STRICT: 1.5,
}

# Scoring
POINTS_PER_CHECK_IN = 10
DEFAULT_GRACE_PERIOD_DAYS = 1
MAX_GRACE_PERIOD_DAYS = 30

# Rank tables: (name, color token, lower threshold)
RANK_TABLE_STANDARD = "standard"
RANK_TABLE_EXTENDED = "extended"

STANDARD_RANK_TIERS = [
    ("BRONZE", "#cd7f32", 0),
    ("SILVER", "#94a3b8", 500),
    ("GOLD", "#fbbf24", 1000),
    ("CRYSTAL", "#67e8f9", 1500),
    ("MASTER", "#a855f7", 2000),
    ("CHAMPION", "#f43f5e", 2500),
    ("LEGEND", "#f59e0b", 3000),
]

EXTENDED_RANK_TIERS = [
    ("BRONZE", "#cd7f32", 0),
    ("SILVER", "#94a3b8", 750),
    ("GOLD", "#fbbf24", 1500),
    ("CRYSTAL", "#67e8f9", 2250),
    ("MASTER", "#a855f7", 3000),
    ("CHAMPION", "#f43f5e", 3750),
    ("LEGEND", "#f59e0b", 4500),
]

# Chart line colors, cycled by habit index within a category
SERIES_COLORS = ["#818cf8", "#f43f5e", "#10b981", "#fbbf24", "#a855f7"]
# Key holding the date in each progress row; never valid as a habit id
SERIES_DATE_KEY = "date"

# Snapshot document
SNAPSHOT_VERSION = 1
BACKUP_FILE_PREFIX = "habits_backup"

# Logging
DEFAULT_LOG_DIRECTORY_PROD = "/var/log/habit-tracker"
DEFAULT_LOG_DIRECTORY_DEV = "./logs"

# Storage
DEFAULT_DATABASE_URL = "sqlite:///./habits.db"
DEFAULT_BACKUP_DIRECTORY_PROD = "/var/lib/habit-tracker/backups"
DEFAULT_BACKUP_DIRECTORY_DEV = "./backups"

# CORS
CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "HABIT_TRACKER_CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173"
    ).split(",")
    if origin.strip()
]
