import os

# Point the service at a throwaway database before evote.config is imported.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_evote.db")
os.environ.setdefault("SMTP_HOST", "")
os.environ.setdefault("EXPOSE_DEBUG_OTP", "true")
os.environ.setdefault("REQUIRE_OTP_FOR_VOTE", "true")
