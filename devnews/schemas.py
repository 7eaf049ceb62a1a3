import math

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# bcrypt only accepts secrets up to this many bytes.
MAX_PASSWORD_BYTES = 72


class RequestModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


# --- Auth ---

class PasswordModel(RequestModel):
    password: str = Field(min_length=6, max_length=MAX_PASSWORD_BYTES)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
        return value


class RegisterRequest(PasswordModel):
    email: EmailStr
    name: str | None = Field(None, min_length=1, max_length=100)


class LoginRequest(RequestModel):
    # Either an email address or a user name.
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)


class ForgotPasswordRequest(RequestModel):
    email: EmailStr


class ResetPasswordRequest(PasswordModel):
    pass


# --- Category ---

class CategoryCreate(RequestModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None


class CategoryUpdate(CategoryCreate):
    pass


# --- Post ---

class PostCreate(RequestModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    published: bool = False
    category_id: int | None = None
    tags: list[str] = []  # tag names, resolved get-or-create


class PostUpdate(RequestModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    published: bool | None = None
    category_id: int | None = None
    tags: list[str] | None = None


# --- Comment ---

class CommentCreate(RequestModel):
    content: str = Field(min_length=1)
    post_id: int
    parent_id: int | None = None


class CommentUpdate(RequestModel):
    content: str = Field(min_length=1)


# --- User ---

class UserUpdate(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    active: bool | None = None
    role_id: int | None = None


# --- Pagination ---

class Pagination(BaseModel):
    total: int
    page: int
    page_size: int
    pages: int

    @classmethod
    def build(cls, total: int, page: int, page_size: int) -> "Pagination":
        return cls(total=total, page=page, page_size=page_size, pages=math.ceil(total / page_size))
