import logging
from typing import Optional

from bson import ObjectId
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import security
from database import USERS

logger = logging.getLogger(__name__)


class EmailTakenError(Exception):
    def __init__(self, email: str):
        super().__init__(f"Email already registered: {email}")
        self.email = email


def create_user(db: Database, email: str, password: str) -> tuple[dict, str]:
    """Persist a new user and open its first session.

    Returns the stored document and the issued token. Raises
    ``EmailTakenError`` when the email belongs to another account.
    """
    if db[USERS].find_one({"email": email}) is not None:
        raise EmailTakenError(email)

    user = {
        "email": email,
        "password": security.hash_password(password),
        "tokens": [],
    }
    try:
        result = db[USERS].insert_one(user)
    except DuplicateKeyError:
        # Lost a race against a concurrent registration of the same email
        raise EmailTakenError(email)
    user["_id"] = result.inserted_id
    logger.info("Registered user %s", user['_id'])

    token = add_token(db, user)
    return user, token


# Same normalisation EmailStr applies at registration; None for a malformed address
def normalize_email(email: str) -> Optional[str]:
    try:
        return validate_email(email)[1]
    except PydanticCustomError:
        return None


def find_by_credentials(db: Database, email: str, password: str) -> Optional[dict]:
    email = normalize_email(email)
    if email is None:
        return None
    user = db[USERS].find_one({"email": email})
    if user is None or not security.verify_password(password, user["password"]):
        return None
    return user


def find_by_token(db: Database, user_id, token: str) -> Optional[dict]:
    if not isinstance(user_id, str) or not ObjectId.is_valid(user_id):
        return None
    return db[USERS].find_one({
        "_id": ObjectId(user_id),
        "tokens": {"$elemMatch": {"token": token, "access": security.AUTH_ACCESS}},
    })


# Issue a new token for the user and persist it on the user document
def add_token(db: Database, user: dict) -> str:
    token = security.generate_auth_token(user["_id"])
    entry = {"access": security.AUTH_ACCESS, "token": token}
    db[USERS].update_one({"_id": user["_id"]}, {"$push": {"tokens": entry}})
    user.setdefault("tokens", []).append(entry)
    return token


def remove_token(db: Database, user: dict, token: str) -> None:
    db[USERS].update_one({"_id": user["_id"]}, {"$pull": {"tokens": {"token": token}}})
    logger.info("User %s logged out a session", user['_id'])
