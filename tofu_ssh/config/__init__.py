"""Configuration module for tofu_ssh.

- Settings: Environment variable configuration
- resolve_known_hosts_path: known_hosts location defaults
"""

from tofu_ssh.config.host_keys import default_known_hosts_path, resolve_known_hosts_path
from tofu_ssh.config.settings import Settings

__all__ = ["default_known_hosts_path", "resolve_known_hosts_path", "Settings"]
