import logging
from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from database import TODOS

logger = logging.getLogger(__name__)

# Every lookup below filters on both the todo id and its owner. A todo that
# belongs to someone else is indistinguishable from one that does not exist.


def now_millis() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _scoped(todo_id: str, owner_id: ObjectId) -> Optional[dict]:
    if not ObjectId.is_valid(todo_id):
        return None
    return {"_id": ObjectId(todo_id), "ownerId": owner_id}


def create_todo(db: Database, text: str, owner_id: ObjectId) -> dict:
    todo = {
        "text": text,
        "completed": False,
        "completedAt": None,
        "ownerId": owner_id,
    }
    todo["_id"] = db[TODOS].insert_one(todo).inserted_id
    logger.info("User %s created todo %s", owner_id, todo['_id'])
    return todo


def list_todos(db: Database, owner_id: ObjectId) -> List[dict]:
    return list(db[TODOS].find({"ownerId": owner_id}))


def get_todo(db: Database, todo_id: str, owner_id: ObjectId) -> Optional[dict]:
    query = _scoped(todo_id, owner_id)
    if query is None:
        return None
    return db[TODOS].find_one(query)


def update_todo(db: Database, todo_id: str, owner_id: ObjectId, changes: dict) -> Optional[dict]:
    """Apply ``text``/``completed`` changes to an owned todo.

    ``completedAt`` is stamped when the todo becomes completed and cleared
    when it is marked not completed. Other keys in ``changes`` are ignored.
    """
    todo = get_todo(db, todo_id, owner_id)
    if todo is None:
        return None

    updates = {key: changes[key] for key in ("text", "completed") if changes.get(key) is not None}
    if "completed" in updates:
        if not updates["completed"]:
            updates["completedAt"] = None
        elif not todo.get("completed") or todo.get("completedAt") is None:
            updates["completedAt"] = now_millis()
    if not updates:
        return todo

    updated = db[TODOS].find_one_and_update(
        {"_id": todo["_id"], "ownerId": owner_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if updated is not None:
        logger.info("User %s updated todo %s: %s", owner_id, todo['_id'], sorted(updates))
    return updated


def delete_todo(db: Database, todo_id: str, owner_id: ObjectId) -> Optional[dict]:
    query = _scoped(todo_id, owner_id)
    if query is None:
        return None
    removed = db[TODOS].find_one_and_delete(query)
    if removed is not None:
        logger.info("User %s deleted todo %s", owner_id, removed['_id'])
    return removed
