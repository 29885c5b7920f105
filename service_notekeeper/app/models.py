"""
Entity, envelope and request models for the Notekeeper service.
"""

from typing import Generic, List, Optional, TypeVar, Union
from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, Field


class EntityKind(str, Enum):
    """Entity kinds held in the store of record."""
    USERS = "users"
    NOTES = "notes"


class Entity(BaseModel):
    """A serializable record with a store-issued identifier."""
    id: str = Field(..., description="Store-generated identifier")
    created_at: Optional[datetime] = Field(None, description="Creation time")
    updated_at: Optional[datetime] = Field(None, description="Last mutation time")


class User(Entity):
    """Public view of a user; the password hash never leaves the store."""
    username: str
    email: str
    name: Optional[str] = None


class Note(Entity):
    """A note owned by a user."""
    title: str
    content: str
    user_id: str = Field(..., description="Owning user identifier")


EntityT = TypeVar("EntityT", bound=Entity)


class Envelope(BaseModel, Generic[EntityT]):
    """Uniform wrapper returned by every read and write operation."""
    data: Union[EntityT, List[EntityT]]
    message: str


class CreateUserRequest(BaseModel):
    """Request model for registering a user."""
    username: Optional[str] = Field(None, description="Unique username")
    email: Optional[str] = Field(None, description="Unique email address")
    name: Optional[str] = Field(None, description="Display name")
    password: Optional[str] = Field(None, description="Plain-text password")


class LoginRequest(BaseModel):
    """Request model for logging in."""
    username: Optional[str] = None
    password: Optional[str] = None


class UpdateUserRequest(BaseModel):
    """Request model for updating a user."""
    username: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None


class CreateNoteRequest(BaseModel):
    """Request model for creating a note."""
    title: Optional[str] = Field(None, description="Note title, unique ignoring case")
    content: Optional[str] = Field(None, description="Note body")
    user_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("user_id", "userId"),
        description="Owning user identifier"
    )


class UpdateNoteRequest(BaseModel):
    """Request model for updating a note."""
    title: Optional[str] = None
    content: Optional[str] = None
