from .settings import SoundRelayConfig, load_config, create_example_env_file, setup_logging

__all__ = ["SoundRelayConfig", "load_config", "create_example_env_file", "setup_logging"]
