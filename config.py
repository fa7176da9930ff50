import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


class Config:
    FRESHRSS_API_URL = os.getenv("FRESHRSS_API_URL")
    FRESHRSS_USERNAME = os.getenv("FRESHRSS_USERNAME")
    FRESHRSS_PASSWORD = os.getenv("FRESHRSS_PASSWORD")

    # API endpoints, relative to FRESHRSS_API_URL
    FEVER_PATH = "/api/fever.php"
    GREADER_PATH = "/api/greader.php"

    # Feed subscribed when a category has to be created from scratch
    PLACEHOLDER_FEED_URL = "https://github.com/FreshRSS/FreshRSS/releases.atom"

    # Request settings
    REQUEST_TIMEOUT = _env_int("FRESHRSS_REQUEST_TIMEOUT", 30)
    VERIFY_SSL = os.getenv("FRESHRSS_VERIFY_SSL", "true").lower() not in (
        "0",
        "false",
        "no",
    )

    # The items endpoint truncates somewhere around 50 ids per call
    UNREAD_BATCH_SIZE = _env_int("FRESHRSS_UNREAD_BATCH_SIZE", 50)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls):
        required = ["FRESHRSS_API_URL", "FRESHRSS_USERNAME", "FRESHRSS_PASSWORD"]
        missing = [var for var in required if not getattr(cls, var)]
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}\n"
                f"Please set these in your .env file or environment.\n"
                f"See .env.example for reference."
            )

        return True
