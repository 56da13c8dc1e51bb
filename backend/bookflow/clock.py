from datetime import datetime, timezone


# FastAPI dependency; tests override it to pin the wall clock
def get_now() -> datetime:
    return datetime.now(timezone.utc)
