from pydantic import BaseModel, EmailStr

class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    telegram_id: str | None = None

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserEdit(BaseModel):
    name: str | None = None
    email: EmailStr | None = None

class UserOut(BaseModel):
    id: int
    name: str
    email: str
    telegram_id: str | None = None

    class Config:
        from_attributes = True
