# settings.py
from pathlib import Path
import os

# --- DB driver shim (MySQL) ---
import pymysql
pymysql.install_as_MySQLdb()

# === Base paths ===
BASE_DIR = Path(__file__).resolve().parent.parent

# === .env loader (load early!) ===
from dotenv import load_dotenv
ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(dotenv_path=ENV_PATH, override=True)
else:
    load_dotenv(override=True)

# === Core flags ===
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

ALLOWED_HOSTS = [h.strip() for h in os.getenv(
    "ALLOWED_HOSTS", "localhost,127.0.0.1"
).split(",") if h.strip()]

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
USE_X_FORWARDED_HOST = True

SITE_NAME = os.getenv("SITE_NAME", "TaskHub")

CSRF_TRUSTED_ORIGINS = [o.strip() for o in os.getenv(
    "CSRF_TRUSTED_ORIGINS", ""
).split(",") if o.strip()]

if DEBUG:
    for o in ("http://127.0.0.1:8000", "http://localhost:8000"):
        if o not in CSRF_TRUSTED_ORIGINS:
            CSRF_TRUSTED_ORIGINS.append(o)

# === Secrets ===
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY")
if not SECRET_KEY:
    raise RuntimeError("DJANGO_SECRET_KEY is not set in environment variables")

# === Security (conditional on DEBUG) ===
if not DEBUG:
    SECURE_SSL_REDIRECT = os.getenv("SECURE_SSL_REDIRECT", "true").lower() == "true"
    SECURE_HSTS_SECONDS = int(os.getenv("SECURE_HSTS_SECONDS", "86400"))
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
else:
    SECURE_SSL_REDIRECT = False
    SECURE_HSTS_SECONDS = 0
    SESSION_COOKIE_SECURE = False
    CSRF_COOKIE_SECURE = False

SESSION_COOKIE_SAMESITE = "Lax"
CSRF_COOKIE_SAMESITE = "Lax"
X_FRAME_OPTIONS = "DENY"
SECURE_CONTENT_TYPE_NOSNIFF = True

# === Apps ===
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # project apps
    "ledger.apps.LedgerConfig",
]

# Custom user
AUTH_USER_MODEL = "ledger.CustomUser"

# Phone numbers (withdrawal destinations)
PHONENUMBER_DEFAULT_REGION = os.getenv("PHONENUMBER_DEFAULT_REGION", "KE")

# === Middleware ===
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.gzip.GZipMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "taskhub_site.urls"
WSGI_APPLICATION = "taskhub_site.wsgi.application"

# === Cache (used by the rate limiter) ===
if os.getenv("CACHE_BACKEND", "").lower() == "filebased":
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.filebased.FileBasedCache",
            "LOCATION": os.getenv("CACHE_FILE_LOCATION", str(BASE_DIR / ".cache")),
            "TIMEOUT": int(os.getenv("CACHE_TIMEOUT", "300")),
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "ledger-cache",
            "TIMEOUT": int(os.getenv("CACHE_TIMEOUT", "300")),
        }
    }

# django-ratelimit: locmem is per-process, fine for a single worker
SILENCED_SYSTEM_CHECKS = ["django_ratelimit.W001", "django_ratelimit.E003"]
RATELIMIT_ENABLE = os.getenv("RATELIMIT_ENABLE", "true").lower() == "true"

# === Templates (admin only) ===
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# === Database ===
if os.getenv("DB_ENGINE", "mysql").lower() == "sqlite":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.getenv("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
            # Transactions take the write lock at BEGIN and queue for it
            "OPTIONS": {
                "transaction_mode": "IMMEDIATE",
                "timeout": int(os.getenv("SQLITE_TIMEOUT", "20")),
            },
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.mysql",
            "NAME": os.getenv("MYSQL_DB_NAME", "taskhub"),
            "USER": os.getenv("MYSQL_DB_USER", "taskhub"),
            "PASSWORD": os.getenv("MYSQL_PASSWORD", ""),
            "HOST": os.getenv("MYSQL_HOST", "127.0.0.1"),
            "PORT": os.getenv("MYSQL_PORT", "3306"),
            "OPTIONS": {
                "charset": "utf8mb4",
                "use_unicode": True,
                "init_command": "SET NAMES 'utf8mb4', sql_mode='STRICT_TRANS_TABLES'",
                "isolation_level": "read committed",
            },
            "CONN_MAX_AGE": int(os.getenv("DB_CONN_MAX_AGE", "300")),
        }
    }

# === Auth / Passwords ===
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# === Internationalization ===
LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("APP_TIMEZONE", "Africa/Nairobi")
USE_I18N = True
USE_TZ = True

# === Static ===
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# === Daily task engine ===
# Day keys reset at local midnight in this zone, independent of TIME_ZONE above.
TASK_DAY_TIMEZONE = os.getenv("TASK_DAY_TIMEZONE", "Africa/Nairobi")
DAILY_TASK_LIMIT = int(os.getenv("DAILY_TASK_LIMIT", "5"))
TASK_ANSWER_MIN_LENGTH = int(os.getenv("TASK_ANSWER_MIN_LENGTH", "2"))
TASK_HISTORY_PAGE_SIZE = int(os.getenv("TASK_HISTORY_PAGE_SIZE", "50"))

# === Referrals ===
REFERRAL_BONUS_AMOUNT = int(os.getenv("REFERRAL_BONUS_AMOUNT", "100"))
REFERRAL_REDEEM_BLOCK = int(os.getenv("REFERRAL_REDEEM_BLOCK", "1000"))

# === Withdrawals / account lifecycle ===
WITHDRAWAL_MIN_AMOUNT = int(os.getenv("WITHDRAWAL_MIN_AMOUNT", "1"))
ACCOUNT_DELETE_GRACE_DAYS = int(os.getenv("ACCOUNT_DELETE_GRACE_DAYS", "7"))

# Per-user limit on POST endpoints (django-ratelimit rate string)
LEDGER_RATELIMIT_WRITE = os.getenv("LEDGER_RATELIMIT_WRITE", "30/m")

# === Logging ===
LEDGER_LOG_LEVEL = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "plain"}},
    "loggers": {
        "ledger": {"handlers": ["console"], "level": LEDGER_LOG_LEVEL, "propagate": False},
        "django.request": {"handlers": ["console"], "level": "WARNING"},
    },
}

# === Defaults ===
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
