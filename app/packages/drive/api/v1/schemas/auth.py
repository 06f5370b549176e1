"""认证相关的请求与响应模型。"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=128)
    email: Optional[str] = Field(None, max_length=255)


class LoginRequest(BaseModel):
    """登录请求的字段校验规则。"""

    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=128)


class UserData(BaseModel):
    id: int
    username: str
    email: Optional[str] = None
    isActive: bool
    isAdmin: bool
    storageUsed: int
    storageLimit: Optional[int] = None


class TokenResponseData(BaseModel):
    """登录成功后签发的令牌信息。"""

    access_token: str
    token_type: Literal["bearer"]


RegisterResponse = ResponseEnvelope[UserData]
TokenResponse = ResponseEnvelope[TokenResponseData]
MeResponse = ResponseEnvelope[UserData]
