"""Pydantic schemas for signup and authentication flows."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field

from app.infra.password import MIN_PASSWORD_LENGTH

UserTypeLiteral = Literal["athlete", "coach", "organization", "parent"]
GoogleUserTypeLiteral = Literal["athlete", "coach", "organization"]


class SignupStart(BaseModel):
	# an email address or a username of at least 6 characters
	email: Annotated[str, Field(min_length=1, validation_alias=AliasChoices("email", "identifier", "username"))]
	password: str
	full_name: Annotated[str, Field(min_length=1, max_length=120)]
	user_type: UserTypeLiteral = "athlete"
	parent_email: Optional[EmailStr] = None


class SignupStartResponse(BaseModel):
	success: bool = True
	message: str
	email: str


class SignupVerify(BaseModel):
	email: str
	otp: Annotated[str, Field(min_length=1, max_length=12)]


class LoginRequest(BaseModel):
	identifier: Annotated[str, Field(min_length=1, validation_alias=AliasChoices("identifier", "email", "username"))]
	password: str


class UserOut(BaseModel):
	id: str
	email: Optional[str] = None
	username: Optional[str] = None
	full_name: Optional[str] = None
	user_type: Optional[str] = None
	profile_url: Optional[str] = None
	parent_email: Optional[str] = None
	followers: int = 0
	following: int = 0
	is_featured: bool = False
	created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
	success: bool = True
	message: str = "Welcome"
	access_token: str
	refresh_token: str
	token_type: str = "bearer"
	expires_in: int
	user: UserOut


class RefreshRequest(BaseModel):
	refresh_token: Annotated[str, Field(min_length=1)]


class RefreshResponse(BaseModel):
	access_token: str
	token_type: str = "bearer"
	expires_in: int


class LogoutRequest(BaseModel):
	refresh_token: Annotated[str, Field(min_length=1)]


class LogoutAllResponse(BaseModel):
	revoked: int


class GoogleSignIn(BaseModel):
	google_id: Annotated[str, Field(min_length=1)]
	email: EmailStr
	full_name: Optional[str] = None
	profile_picture: Optional[str] = None
	email_verified: bool = True


class GoogleSignInResponse(BaseModel):
	success: bool = True
	needs_user_type: bool = False
	user: UserOut
	access_token: Optional[str] = None
	refresh_token: Optional[str] = None
	expires_in: Optional[int] = None


class GoogleComplete(BaseModel):
	google_id: Annotated[str, Field(min_length=1)]
	user_type: GoogleUserTypeLiteral


class PasswordResetRequest(BaseModel):
	identifier: Annotated[str, Field(min_length=1, validation_alias=AliasChoices("identifier", "email", "username"))]


class PasswordResetConsume(BaseModel):
	identifier: Annotated[str, Field(min_length=1, validation_alias=AliasChoices("identifier", "email", "username"))]
	otp: Annotated[str, Field(min_length=1, max_length=12)]
	new_password: Annotated[str, Field(min_length=MIN_PASSWORD_LENGTH)]


class MessageResponse(BaseModel):
	success: bool = True
	message: str
