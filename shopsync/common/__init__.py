# Common utilities
from .config_loader import SyncSettings, build_settings, load_config, load_sync_settings
from .encryption import SecretBox
from .errors import (
    AuthError,
    ConfigurationError,
    PersistenceError,
    ProviderError,
    SyncError,
    TransportError,
)
from .log_config import setup_logging
