from typing import Annotated, List, Optional

from pydantic import BaseModel, BeforeValidator, EmailStr, Field, constr

# MongoDB ObjectIds leave the API as their hex string form
PyObjectId = Annotated[str, BeforeValidator(str)]

TodoText = constr(strip_whitespace=True, min_length=1)


# Schema for a new user registration
class UserCreate(BaseModel):
    email: EmailStr
    password: constr(min_length=6)


# Schema for a user login
class UserLogin(BaseModel):
    email: str
    password: str


# Public view of a user; password hash and tokens never leave the server
class User(BaseModel):
    id: PyObjectId = Field(alias="_id")
    email: str

    class Config:
        populate_by_name = True


class TodoCreate(BaseModel):
    text: TodoText


# Only these two fields may be changed by a client
class TodoUpdate(BaseModel):
    text: Optional[TodoText] = None
    completed: Optional[bool] = None


class Todo(BaseModel):
    id: PyObjectId = Field(alias="_id")
    text: str
    completed: bool = False
    completed_at: Optional[int] = Field(default=None, alias="completedAt")
    owner_id: PyObjectId = Field(alias="ownerId")

    class Config:
        populate_by_name = True


class TodoResponse(BaseModel):
    todo: Todo


class TodoList(BaseModel):
    todos: List[Todo]
