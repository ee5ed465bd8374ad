from ccapproval.config.loader import (
    get_platform_config_path,
    load_settings,
)
from ccapproval.config.settings import (
    ApiConfig,
    ApprovalConfig,
    PolicyConfig,
    Settings,
    SlackConfig,
    StorageConfig,
)

__all__ = [
    "ApiConfig",
    "ApprovalConfig",
    "PolicyConfig",
    "Settings",
    "SlackConfig",
    "StorageConfig",
    "get_platform_config_path",
    "load_settings",
]
