"""Pydantic models for session API payloads."""

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class CreateSessionRequest(BaseModel):
    """Body for creating a session."""

    name: str | None = None


class VoteEntry(BaseModel):
    """Voters for one restaurant, as sent by clients."""

    model_config = ConfigDict(populate_by_name=True)

    restaurant_id: str = Field(alias="restaurantId")
    upvotes: list[str] = Field(default_factory=list)
    downvotes: list[str] = Field(default_factory=list)


class UpdateSessionRequest(BaseModel):
    """Field-level merge of a session; unknown fields such as ``id`` are ignored."""

    name: str | None = None
    restaurants: list[dict[str, object]] | None = None
    votes: list[VoteEntry] | None = None


class ResolveSessionRequest(BaseModel):
    """Body for get-or-create resolution."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")
    name: str | None = None


class AddRestaurantRequest(BaseModel):
    """Body for adding a restaurant to a session."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    restaurant: dict[str, object]


class VoteRequest(BaseModel):
    """Body for casting a vote."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    restaurant_id: str = Field(alias="restaurantId")
    user_id: str = Field(alias="userId")
    is_upvote: StrictBool = Field(alias="isUpvote")
