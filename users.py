import logging
import uuid

from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

from database import MongoStore, to_str_id, utcnow
from errors import DuplicateUser, InvalidCredentials, NotFound
from schemas import GoogleLogin, UserRegister, UserUpdate

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def public_user(doc: dict) -> dict:
    user = to_str_id(doc)
    user.pop("passwordHash", None)
    return user


def issue_token() -> str:
    # Placeholder session token, not a credential.
    return uuid.uuid4().hex


class UserService:
    def __init__(self, store: MongoStore):
        self.store = store

    def register(self, payload: UserRegister) -> dict:
        email = payload.email.lower()
        if self.store.users.find_one({"email": email}):
            raise DuplicateUser("User already exists")
        now = utcnow()
        doc = {
            "name": payload.name,
            "email": email,
            "passwordHash": pwd_context.hash(payload.password),
            "photoURL": payload.photo_url,
            "googleAuth": False,
            "role": "user",
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            self.store.users.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateUser("User already exists")
        logger.info("Registered user %s", email)
        return self.get(email)

    def login(self, email: str, password: str) -> dict:
        user = self.store.users.find_one({"email": email.lower()})
        hashed = user.get("passwordHash") if user else None
        if not hashed or not pwd_context.verify(password, hashed):
            logger.info("Failed login for %s", email)
            raise InvalidCredentials()
        return {"user": public_user(user), "token": issue_token()}

    def google_login(self, payload: GoogleLogin) -> dict:
        email = payload.email.lower()
        now = utcnow()
        changes = {"googleAuth": True, "updatedAt": now}
        if payload.name:
            changes["name"] = payload.name
        if payload.photo_url:
            changes["photoURL"] = payload.photo_url
        if payload.google_id:
            changes["googleId"] = payload.google_id
        on_insert = {"role": "user", "createdAt": now}
        if not payload.name:
            on_insert["name"] = email.split("@")[0]
        self.store.users.update_one(
            {"email": email},
            {"$set": changes, "$setOnInsert": on_insert},
            upsert=True,
        )
        user = self.store.users.find_one({"email": email})
        return {"user": public_user(user), "token": issue_token()}

    def get(self, email: str) -> dict:
        user = self.store.users.find_one({"email": email.lower()})
        if not user:
            raise NotFound("User not found")
        return public_user(user)

    def update(self, email: str, payload: UserUpdate) -> dict:
        changes = {"updatedAt": utcnow()}
        if payload.name:
            changes["name"] = payload.name
        if payload.photo_url is not None:
            changes["photoURL"] = payload.photo_url
        if payload.password:
            changes["passwordHash"] = pwd_context.hash(payload.password)
        result = self.store.users.update_one({"email": email.lower()}, {"$set": changes})
        if result.matched_count == 0:
            raise NotFound("User not found")
        return self.get(email)
