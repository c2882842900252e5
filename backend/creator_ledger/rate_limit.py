"""Shared slowapi limiter, attached to the app in main and used by routers."""
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
