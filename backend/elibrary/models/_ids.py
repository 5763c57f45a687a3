import uuid


def new_id() -> str:
    """Primary key generator shared by every table (opaque string ids)."""
    return str(uuid.uuid4())
