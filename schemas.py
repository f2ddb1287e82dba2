"""
Schemas for the quiz platform.

`User` and `Game` are the documents stored in the MongoDB collections of the
same (lowercased) name. The remaining models are request bodies and response
shapes; responses use camelCase keys on the wire.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Stored documents

class User(BaseModel):
    email: EmailStr = Field(..., description="Email address, used as login")
    password_hash: str = Field(..., description="BCrypt hashed password")
    is_admin: bool = Field(False, description="True if user has admin rights")
    completed_games: List[str] = Field(default_factory=list, description="Ids of completed games")
    created_at: datetime = Field(default_factory=utc_now, description="Creation date of the user")


class Answer(CamelModel):
    content: str = Field(..., min_length=1, description="The answer itself")
    correct: bool = Field(..., description="True if it is the correct answer")


class Question(CamelModel):
    order: Optional[int] = Field(None, description="Order in which questions are displayed")
    content: str = Field(..., min_length=1, description="The question itself")
    answers: List[Answer] = Field(default_factory=list)


class GameBase(CamelModel):
    title: str = Field(..., min_length=1, description="Title of the game")
    icon: Optional[str] = Field(None, description="Link for game icon")
    theory: Optional[str] = Field(None, description="Some theory about the game")
    start_text: Optional[str] = Field(None, description="Text shown before the first question")
    end_text: Optional[str] = Field(None, description="Text shown after the last question")
    order: Optional[int] = Field(None, description="Order of the game in the menu list")
    questions: List[Question] = Field(default_factory=list)


class Game(GameBase):
    created_at: datetime = Field(default_factory=utc_now, description="Creation date of the game")


# Requests

class GameCreate(GameBase):
    pass


class RegisterBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, description="A password with at least 6 characters")


class LoginBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


# Responses

class Token(BaseModel):
    token: str


class Message(BaseModel):
    msg: str


class UserOut(CamelModel):
    id: str
    email: str
    is_admin: bool = False
    completed_games: List[str] = Field(default_factory=list)
    created_at: datetime


class GameOut(GameBase):
    id: str
    created_at: datetime
