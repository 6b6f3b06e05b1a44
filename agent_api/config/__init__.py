from agent_api.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
