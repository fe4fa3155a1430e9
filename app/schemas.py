from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime


# --- Role ---

class RoleBase(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: str = Field(min_length=1, max_length=255)


class RoleCreate(RoleBase):
    pass


class RoleUpdate(RoleBase):
    pass


class RoleResponse(RoleBase):
    id: int
    model_config = ConfigDict(from_attributes=True)


# --- Tag ---

class TagBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class TagCreate(TagBase):
    pass


class TagUpdate(TagBase):
    pass


class TagResponse(TagBase):
    id: int
    model_config = ConfigDict(from_attributes=True)


class TagSummary(TagResponse):
    article_count: int = 0


# --- User ---

class UserBase(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(min_length=1, max_length=50)


class UserRegister(UserBase):
    password: str = Field(min_length=4, max_length=128)


class UserCreate(UserRegister):
    role_id: int


class UserUpdate(UserBase):
    # Omitted / None keeps the current password and role.
    password: str | None = Field(None, min_length=4, max_length=128)
    role_id: int | None = None


class UserResponse(UserBase):
    id: int
    registration_date: datetime
    role_id: int
    role: RoleResponse | None = None
    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


# --- Comment ---

class CommentBase(BaseModel):
    content: str = Field(min_length=1)


class CommentCreate(CommentBase):
    article_id: int


class CommentUpdate(CommentBase):
    pass


class AuthorSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str


class CommentResponse(CommentBase):
    id: int
    article_id: int
    user_id: int
    comment_date: datetime
    author: AuthorSummary | None = None
    model_config = ConfigDict(from_attributes=True)


# --- Article ---

class ArticleBase(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    content: str = Field(min_length=1)


class ArticleCreate(ArticleBase):
    # At least one tag must be selected when an article is written.
    tag_ids: list[int] = Field(min_length=1)


class ArticleUpdate(ArticleBase):
    # Replaces the article's tag set; an empty list clears it.
    tag_ids: list[int] = []


class ArticleResponse(BaseModel):
    id: int
    title: str
    view_count: int
    publication_date: datetime
    user_id: int
    author: AuthorSummary | None = None
    tags: list[TagResponse] = []
    model_config = ConfigDict(from_attributes=True)


class ArticleDetail(ArticleResponse):
    content: str
    comments: list[CommentResponse] = []


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # Will be typed in router
    total: int
    page: int
    page_size: int
    pages: int
