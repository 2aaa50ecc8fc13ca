from pydantic import BaseModel, EmailStr

from propertyhub.models.user import UserRole


class SendCodeRequest(BaseModel):
    email: EmailStr


class VerifyCodeRequest(BaseModel):
    email: EmailStr
    code: str


class SessionUser(BaseModel):
    id: int
    email: EmailStr
    name: str | None
    user_name: str | None
    role: UserRole

    class Config:
        from_attributes = True
