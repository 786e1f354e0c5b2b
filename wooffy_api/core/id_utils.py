import re
import uuid

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def generate_id() -> str:
    return str(uuid.uuid4())


def is_valid_uuid(value: str | None) -> bool:
    return bool(value) and bool(UUID_PATTERN.match(value))
