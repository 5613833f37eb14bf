import os

# Cheap hashing and a fixed secret for the test run; must be set before config is imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import security
from database import TODOS, USERS, ensure_indexes, get_db
from main import app

USER_ONE_ID = ObjectId()
USER_TWO_ID = ObjectId()


def _seed_users():
    return [
        {
            "_id": USER_ONE_ID,
            "email": "andrew@example.com",
            "password": "userOnePass",
            "tokens": [{"access": "auth", "token": security.generate_auth_token(USER_ONE_ID)}],
        },
        {
            "_id": USER_TWO_ID,
            "email": "jen@example.com",
            "password": "userTwoPass",
            "tokens": [{"access": "auth", "token": security.generate_auth_token(USER_TWO_ID)}],
        },
    ]


def _seed_todos():
    return [
        {
            "_id": ObjectId(),
            "text": "First test todo",
            "completed": False,
            "completedAt": None,
            "ownerId": USER_ONE_ID,
        },
        {
            "_id": ObjectId(),
            "text": "Second test todo",
            "completed": True,
            "completedAt": 333,
            "ownerId": USER_TWO_ID,
        },
    ]


@pytest.fixture
def db():
    database = mongomock.MongoClient()["todo_app_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def users(db):
    seeded = _seed_users()
    # Stored copies carry hashed passwords; the returned list keeps the plaintext for logins
    db[USERS].insert_many([
        {**user, "password": security.hash_password(user["password"])} for user in seeded
    ])
    return seeded


@pytest.fixture
def todos(db):
    seeded = _seed_todos()
    db[TODOS].insert_many([dict(todo) for todo in seeded])
    return seeded


@pytest.fixture
def client(db, users, todos):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user):
    return {"x-auth": user["tokens"][0]["token"]}
