from fastapi import HTTPException
from bson import ObjectId
from bson.errors import InvalidId

# -------------------------------
# ObjectId Guard
# -------------------------------

def parse_object_id(value: str, name: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {name}")


def parse_optional_object_id(value: str | None, name: str = "id") -> ObjectId | None:
    if value is None:
        return None
    return parse_object_id(value, name)


# -------------------------------
# Seller State Guard
# -------------------------------

def assert_seller_not_frozen(seller: dict):
    if seller.get("is_frozen"):
        raise HTTPException(
            status_code=403,
            detail="Seller account frozen"
        )
