from .settings import JudgingSettings, settings

__all__ = ["JudgingSettings", "settings"]
