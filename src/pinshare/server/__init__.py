from .main import create_app, app_from_env

__all__ = ["create_app", "app_from_env"]
