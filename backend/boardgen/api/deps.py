"""API dependencies."""
from ..config import Settings, get_settings
from ..core.generator import get_generator, LevelGenerator


def get_app_settings() -> Settings:
    """Dependency for application settings."""
    return get_settings()


def get_level_generator() -> LevelGenerator:
    """Dependency for level generator."""
    settings = get_settings()
    return get_generator(settings.max_color_deviation, settings.symmetric_retries)
