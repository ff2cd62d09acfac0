from pydantic import BaseModel, Field


class AdminTokenRequest(BaseModel):
    password: str = Field(min_length=1, max_length=256)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
