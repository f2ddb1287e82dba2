import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, get_settings
from database import Database, create_database
from policies import ErrorKind, Failure, Result
from schemas import GameCreate, GameOut, LoginBody, Message, RegisterBody, Token, UserOut
from security import Identity, PasswordHasher, TokenService, get_identity
from services import GameService, UserService

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def failure_response(failure: Failure) -> JSONResponse:
    if failure.kind in (ErrorKind.VALIDATION, ErrorKind.CONFLICT):
        content = {"errors": [{"msg": failure.msg}]}
    else:
        content = {"msg": failure.msg}
    return JSONResponse(status_code=STATUS_BY_KIND[failure.kind], content=content)


def respond(result: Result):
    if isinstance(result, Failure):
        return failure_response(result)
    return result.value


# Dependencies

def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_game_service(request: Request) -> GameService:
    return request.app.state.game_service


# Users

users_router = APIRouter(prefix="/users", tags=["Users"])


@users_router.post("", response_model=Token, summary="Creates new user.")
async def register(body: RegisterBody, users: UserService = Depends(get_user_service)):
    return respond(await users.register(body))


@users_router.get("", response_model=List[UserOut], summary="Get all users details.")
async def list_users(users: UserService = Depends(get_user_service)):
    return respond(await users.list_users())


@users_router.get("/auth", response_model=UserOut, summary="Get current user details.")
async def current_user(
    identity: Identity = Depends(get_identity),
    users: UserService = Depends(get_user_service),
):
    return respond(await users.current_user(identity))


@users_router.post("/auth", response_model=Token, summary="Log in the user.")
async def login(body: LoginBody, users: UserService = Depends(get_user_service)):
    return respond(await users.login(body))


@users_router.delete(
    "/{user_id}",
    response_model=Message,
    summary="Delete user by id. Can be done only by administrator or the user himself.",
)
async def delete_user(
    user_id: str,
    identity: Identity = Depends(get_identity),
    users: UserService = Depends(get_user_service),
):
    return respond(await users.delete_user(identity, user_id))


# Games

games_router = APIRouter(prefix="/games", tags=["Games"])


@games_router.post("", response_model=GameOut, summary="Creates new game.")
async def create_game(
    body: GameCreate,
    identity: Identity = Depends(get_identity),
    games: GameService = Depends(get_game_service),
):
    return respond(await games.create_game(identity, body))


@games_router.get("", response_model=List[GameOut], summary="Get all games.")
async def list_games(games: GameService = Depends(get_game_service)):
    return respond(await games.list_games())


@games_router.get(
    "/{game_id}",
    response_model=GameOut,
    summary="Get game by id.",
    dependencies=[Depends(get_identity)],
)
async def get_game(game_id: str, games: GameService = Depends(get_game_service)):
    return respond(await games.get_game(game_id))


@games_router.put(
    "/complete/{game_id}",
    response_model=UserOut,
    summary="Complete game by id. Game will be added to current user completed games list.",
)
async def complete_game(
    game_id: str,
    identity: Identity = Depends(get_identity),
    games: GameService = Depends(get_game_service),
):
    return respond(await games.complete_game(identity, game_id))


@games_router.delete("/{game_id}", response_model=Message, summary="Delete game by id. Only admins are authorized.")
async def delete_game(
    game_id: str,
    identity: Identity = Depends(get_identity),
    games: GameService = Depends(get_game_service),
):
    return respond(await games.delete_game(identity, game_id))


# Error handlers

async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "msg": err["msg"],
            "param": ".".join(str(part) for part in err["loc"][1:]),
            "location": err["loc"][0] if err["loc"] else None,
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": errors})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"msg": exc.detail}, headers=exc.headers)


async def server_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"msg": "Server error"})


# App

def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    database = database or create_database(settings)

    tokens = TokenService(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expires_in=timedelta(days=settings.token_expire_days),
    )
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    user_service = UserService(database, hasher, tokens)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await database.connect()
        if settings.admin_email and settings.admin_password:
            await user_service.seed_admin(settings.admin_email, settings.admin_password)
        yield
        await database.close()

    app = FastAPI(
        title="Quiz API",
        version="1.0.0",
        description="Users, quiz games and completions.",
        docs_url="/api-docs",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.token_service = tokens
    app.state.user_service = user_service
    app.state.game_service = GameService(database)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, server_error_handler)

    @app.get("/")
    def read_root():
        return {"message": "Quiz API running"}

    app.include_router(users_router)
    app.include_router(games_router)
    return app


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
