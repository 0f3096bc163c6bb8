from fastapi import Form
from pydantic import BaseModel


class RegisterForm(BaseModel):
    first_name: str
    last_name: str
    email: str
    password: str

    @classmethod
    def as_form(
        cls,
        first_name: str = Form(...),
        last_name: str = Form(...),
        email: str = Form(...),
        password: str = Form(...),
    ):
        return cls(
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=email.lower().strip(),
            password=password,
        )


class UserRead(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: str
