"""StreamShort — short-form video series backend.

Phone OTP sign-in, JWT access/refresh sessions, and the creator →
series → episode ownership rules that gate every content mutation.
"""

__version__ = "0.1.0"
