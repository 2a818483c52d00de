"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Returned by the get_current_session dependency. The email doubles as
    the sender address for the user's scheduled emails.
    """
    user_id: UUID
    email: str
    display_name: str
