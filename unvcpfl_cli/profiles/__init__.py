"""Profile schema, compiler and store."""

from .compiler import CompiledLaunch
from .compiler import compile_profile
from .schema import Profile
from .store import ProfileStore

__all__ = ["CompiledLaunch", "Profile", "ProfileStore", "compile_profile"]
