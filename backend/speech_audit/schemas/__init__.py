# speech_audit/schemas/__init__.py
"""
Schema module initialization.
Exports all schema classes from submodules for convenient imports.
"""
from .auth import *
from .template import *
from .session import *
from .insight import *
