"""
Authentication Use Cases

Account provisioning.
"""

from .signup_use_case import SignupUseCase
from .signup_dto import ProfileInfo, SignupCommand, SignupResponse, UserInfo

__all__ = [
    # Use Cases
    "SignupUseCase",
    # DTOs - Commands
    "SignupCommand",
    # DTOs - Responses
    "SignupResponse",
    # DTOs - Nested Models
    "UserInfo",
    "ProfileInfo",
]
