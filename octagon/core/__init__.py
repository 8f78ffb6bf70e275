"""Core fight rules: action catalogue and combat resolution. No FastAPI or asyncio imports."""
