"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Relay settings with defaults for development."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8080  # PORT=0 binds any free port

    # Bearer token guarding /clients. Empty rejects every token.
    auth_token: str = ""

    # Relay message type literals
    # FROM_SERVER_TYPE: type a client uses for a message it authored
    # TO_CLIENT_TYPE: type the relay stamps on messages it delivers
    to_client_type: str = "to_client"
    from_server_type: str = "from_server"

    # Environment
    environment: str = "development"
    debug: bool = False

    # Logging sinks
    log_to_file: bool = False
    log_dir: str = "."

    # Error reporting (Bugsnag is only wired when a key is present)
    bugsnag_api_key: str = ""

    # WebSocket
    ws_outbox_max_size: int = 256  # Pending outbound frames per connection

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_message_types(self) -> list[str]:
        """
        Check that the relay literals are usable.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        from relay_gateway.components.core.constants import MSG_OBSERVER_IDENTIFY

        errors = []
        if not self.to_client_type:
            errors.append("TO_CLIENT_TYPE must not be empty")
        if not self.from_server_type:
            errors.append("FROM_SERVER_TYPE must not be empty")
        if self.from_server_type == MSG_OBSERVER_IDENTIFY:
            errors.append(
                f"FROM_SERVER_TYPE must differ from the observer handshake '{MSG_OBSERVER_IDENTIFY}'"
            )
        return errors


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
