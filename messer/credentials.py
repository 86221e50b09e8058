"""Interactive credential prompts used during login."""

import asyncio
import getpass
import os
from typing import Tuple


def _read_credentials() -> Tuple[str, str]:
    email = os.environ.get("MESSER_EMAIL") or input("Email: ").strip()
    password = getpass.getpass("Password: ")
    return email, password


def _read_mfa_code() -> str:
    return input("Enter the 2FA code sent to your device: ").strip()


async def prompt_credentials() -> Tuple[str, str]:
    """Ask for email and password without blocking the event loop."""
    return await asyncio.to_thread(_read_credentials)


async def prompt_mfa_code() -> str:
    return await asyncio.to_thread(_read_mfa_code)
