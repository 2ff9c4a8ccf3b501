import enum

# ── Lifetimes (defaults; Settings can override) ───────────────────────────────
SESSION_EXPIRE_SECONDS: int = 86_400 * 7  # 7 days, token claim and session row
OTP_EXPIRE_SECONDS: int = 300              # 5 minutes
OTP_COOLDOWN_SECONDS: int = 120            # 2 minutes between requests
CLEANUP_INTERVAL_SECONDS: int = 300        # maintenance tick

# ── OTP format ────────────────────────────────────────────────────────────────
OTP_MIN: int = 100_000
OTP_MAX: int = 999_999
OTP_LENGTH: int = 6

# ── Password hashing ──────────────────────────────────────────────────────────
BCRYPT_ROUNDS: int = 12
PASSWORD_MIN_LENGTH: int = 6
PASSWORD_MAX_LENGTH: int = 128

# ── Identifier formats ────────────────────────────────────────────────────────
PHONE_PATTERN: str = r"^\+?[1-9]\d{0,15}$"
PHONE_SEPARATORS: str = r"[\s\-\(\)]"


# ── Delivery channel for a one-time code ──────────────────────────────────────
class OTPChannel(str, enum.Enum):
    EMAIL = "email"
    PHONE = "phone"


# ── What a one-time code authorises ───────────────────────────────────────────
class OTPPurpose(str, enum.Enum):
    LOGIN = "login"
    REGISTER = "register"
    RESET = "reset"
