"""
Operations behind the HTTP routes.

Each operation loads what it needs from the store, applies the access rules
from `policies` and returns a `Result`.
"""
import logging
from typing import List

from database import Database, DuplicateDocumentError
from policies import (
    ActorNotFoundError,
    Failure,
    Ok,
    Result,
    can_delete_user,
    can_manage_games,
    conflict,
    not_found,
    require_actor,
    should_record_completion,
)
from schemas import (
    Game,
    GameCreate,
    GameOut,
    LoginBody,
    Message,
    RegisterBody,
    Token,
    User,
    UserOut,
)
from security import Identity, PasswordHasher, TokenService

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid Credentials"


def user_doc_to_out(doc) -> UserOut:
    return UserOut.model_validate(doc)


def game_doc_to_out(doc) -> GameOut:
    return GameOut.model_validate(doc)


class UserService:

    def __init__(self, database: Database, hasher: PasswordHasher, tokens: TokenService):
        self.users = database.users
        self.hasher = hasher
        self.tokens = tokens

    async def register(self, body: RegisterBody) -> Result[Token]:
        if await self.users.find_one({"email": body.email}):
            return conflict("User already exists")

        user = User(email=body.email, password_hash=self.hasher.hash(body.password), is_admin=False)
        try:
            user_id = await self.users.create_document(user)
        except DuplicateDocumentError:
            # registered concurrently between the lookup and the insert
            return conflict("User already exists")

        logger.info("Registered user %s", user_id)
        return Ok(Token(token=self.tokens.issue(user_id)))

    async def login(self, body: LoginBody) -> Result[Token]:
        user = await self.users.find_one({"email": body.email})
        if user is None or not self.hasher.verify(body.password, user.get("password_hash", "")):
            return conflict(INVALID_CREDENTIALS)
        return Ok(Token(token=self.tokens.issue(user["id"])))

    async def current_user(self, identity: Identity) -> Result[UserOut]:
        user = await self.users.find_by_id(identity.user_id)
        if user is None:
            return not_found("User not found")
        return Ok(user_doc_to_out(user))

    async def list_users(self) -> Result[List[UserOut]]:
        return Ok([user_doc_to_out(doc) for doc in await self.users.find()])

    async def delete_user(self, identity: Identity, user_id: str) -> Result[Message]:
        target = await self.users.find_by_id(user_id)
        if target is None:
            return not_found("User not found")

        actor = require_actor(await self.users.find_by_id(identity.user_id), identity.user_id)
        decision = can_delete_user(actor, target["id"])
        if isinstance(decision, Failure):
            return decision

        await self.users.delete_by_id(target["id"])
        logger.info("User %s deleted by %s", target["id"], actor["id"])
        return Ok(Message(msg="User successfully deleted from our platform"))

    async def seed_admin(self, email: str, password: str) -> bool:
        """Create the configured admin account unless the email is already taken."""
        if await self.users.find_one({"email": email}):
            return False
        admin = User(email=email, password_hash=self.hasher.hash(password), is_admin=True)
        try:
            await self.users.create_document(admin)
        except DuplicateDocumentError:
            return False
        logger.info("Seeded admin account %s", email)
        return True


class GameService:

    def __init__(self, database: Database):
        self.users = database.users
        self.games = database.games

    async def create_game(self, identity: Identity, body: GameCreate) -> Result[GameOut]:
        actor = require_actor(await self.users.find_by_id(identity.user_id), identity.user_id)
        decision = can_manage_games(actor, "add")
        if isinstance(decision, Failure):
            return decision

        game = Game(**body.model_dump())
        game_id = await self.games.create_document(game)
        logger.info("Game %s created by %s", game_id, actor["id"])
        return Ok(game_doc_to_out({**game.model_dump(), "id": game_id}))

    async def list_games(self) -> Result[List[GameOut]]:
        docs = await self.games.find(sort_by="created_at", descending=True)
        return Ok([game_doc_to_out(doc) for doc in docs])

    async def get_game(self, game_id: str) -> Result[GameOut]:
        game = await self.games.find_by_id(game_id)
        if game is None:
            return not_found("Game not found")
        return Ok(game_doc_to_out(game))

    async def complete_game(self, identity: Identity, game_id: str) -> Result[UserOut]:
        game = await self.games.find_by_id(game_id)
        if game is None:
            return not_found("Game not found")

        user = require_actor(await self.users.find_by_id(identity.user_id), identity.user_id)
        if should_record_completion(user, game["id"]):
            if not await self.users.add_to_set(user["id"], "completed_games", game["id"]):
                raise ActorNotFoundError(identity.user_id)
            user = require_actor(await self.users.find_by_id(user["id"]), identity.user_id)
        return Ok(user_doc_to_out(user))

    async def delete_game(self, identity: Identity, game_id: str) -> Result[Message]:
        game = await self.games.find_by_id(game_id)
        if game is None:
            return not_found("Game not found")

        actor = require_actor(await self.users.find_by_id(identity.user_id), identity.user_id)
        decision = can_manage_games(actor, "delete")
        if isinstance(decision, Failure):
            return decision

        await self.games.delete_by_id(game["id"])
        logger.info("Game %s deleted by %s", game["id"], actor["id"])
        return Ok(Message(msg="Game successfully deleted from our platform"))
