import logging
from contextlib import asynccontextmanager
from typing import Annotated, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from jose import JWTError
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
import security
import todos
import users
from database import ensure_indexes, get_db
from schemas import Todo, TodoCreate, TodoList, TodoResponse, TodoUpdate, User, UserCreate, UserLogin

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=config.LOG_LEVEL,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(get_db())
    yield


# Initialize FastAPI
app = FastAPI(title="Todo API", lifespan=lifespan)

# Configure CORS so a browser frontend can call the API and read the token header
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-auth"],
)

# Clients send their token in the x-auth header
auth_header = APIKeyHeader(name="x-auth", auto_error=False)


# --- Error Handling ---
# Malformed request bodies are client errors, reported as 400 rather than FastAPI's 422
@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(users.EmailTakenError)
def email_taken_handler(request: Request, exc: users.EmailTakenError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Email already registered."},
    )


@app.exception_handler(PyMongoError)
def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.exception_handler(Exception)
def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# --- Authentication ---
# Dependency returning the raw token of the current request
def get_token(token: Annotated[Optional[str], Depends(auth_header)]) -> str:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return token


# Dependency function to get the current authenticated user from the x-auth token
def get_current_user(
    token: Annotated[str, Depends(get_token)],
    db: Annotated[Database, Depends(get_db)],
) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
    )
    try:
        payload = security.decode_auth_token(token)
    except JWTError as e:
        logger.warning("Rejected token: %s", e)
        raise credentials_exception
    if payload.get("access") != security.AUTH_ACCESS:
        raise credentials_exception

    # A valid signature is not enough: the token must still be persisted on the user
    user = users.find_by_token(db, payload.get("_id"), token)
    if user is None:
        logger.warning("Rejected token: not attached to any user")
        raise credentials_exception
    return user


CurrentUser = Annotated[dict, Depends(get_current_user)]
Db = Annotated[Database, Depends(get_db)]


# --- User Endpoints ---
# Endpoint for user registration; the first session token comes back in x-auth
@app.post("/users", response_model=User)
def register_user(user: UserCreate, response: Response, db: Db):
    new_user, token = users.create_user(db, user.email, user.password)
    response.headers["x-auth"] = token
    return new_user


# Endpoint for user login; every login opens a new session with its own token
@app.post("/users/login", response_model=User)
def login_user(credentials: UserLogin, response: Response, db: Db):
    user = users.find_by_credentials(db, credentials.email, credentials.password)
    if user is None:
        logger.warning("Failed login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )
    token = users.add_token(db, user)
    logger.info("User %s logged in", user['_id'])
    response.headers["x-auth"] = token
    return user


@app.get("/users/me", response_model=User)
def read_current_user(current_user: CurrentUser):
    return current_user


# Logout removes only the token used for this request
@app.delete("/users/me/token", status_code=status.HTTP_204_NO_CONTENT)
def logout_user(current_user: CurrentUser, token: Annotated[str, Depends(get_token)], db: Db):
    users.remove_token(db, current_user, token)


# --- Todo Endpoints ---
@app.post("/todos", response_model=Todo)
def create_todo(todo: TodoCreate, current_user: CurrentUser, db: Db):
    return todos.create_todo(db, todo.text, current_user["_id"])


@app.get("/todos", response_model=TodoList)
def read_todos(current_user: CurrentUser, db: Db):
    return {"todos": todos.list_todos(db, current_user["_id"])}


@app.get("/todos/{todo_id}", response_model=TodoResponse)
def read_todo(todo_id: str, current_user: CurrentUser, db: Db):
    todo = todos.get_todo(db, todo_id, current_user["_id"])
    if todo is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    return {"todo": todo}


@app.patch("/todos/{todo_id}", response_model=TodoResponse)
def update_todo(todo_id: str, current_user: CurrentUser, db: Db, changes: Optional[TodoUpdate] = None):
    fields = changes.model_dump(exclude_none=True) if changes else {}
    todo = todos.update_todo(db, todo_id, current_user["_id"], fields)
    if todo is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    return {"todo": todo}


@app.delete("/todos/{todo_id}", response_model=TodoResponse)
def delete_todo(todo_id: str, current_user: CurrentUser, db: Db):
    todo = todos.delete_todo(db, todo_id, current_user["_id"])
    if todo is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    return {"todo": todo}


if __name__ == "__main__":
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
