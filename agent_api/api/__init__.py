from agent_api.api.service import create_app

__all__ = ["create_app"]
