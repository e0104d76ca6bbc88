from pydantic import BaseModel, Field


class Artist(BaseModel):
    """A user's (fictional) artist profile used as generation context."""

    id: str | None = Field(default=None, description="Record id in the persistent store")
    user_id: str | None = Field(default=None, description="Owning user")
    name: str = Field(description="Artist or band name")
    style_description: str = Field(default="", description="Musical style of the artist")
    special_characteristics: str = Field(
        default="", description="What makes the artist unique"
    )

    def context_text(self) -> str:
        """Render the artist block embedded in the song generation prompt."""
        return (
            f"Artist: {self.name}\n"
            f"Style: {self.style_description}\n"
            f"Characteristics: {self.special_characteristics}"
        )


NO_ARTIST_CONTEXT = "Create an original artist style"


class ArtistOption(BaseModel):
    """One AI-suggested artist profile."""

    name: str
    style_description: str = ""
    special_characteristics: str = ""
