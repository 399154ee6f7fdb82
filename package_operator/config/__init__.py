"""
Base operator config module. Values here are only the bootup config of the
operator process. Everything a package needs comes from its own spec.
"""

# Local
from .config import get_environment_package_config, library_config


# Define __getattr__ on this module to delegate to the library config.
def __getattr__(name):
    if name in library_config or hasattr({}, name):
        return getattr(library_config, name)
    raise AttributeError(f"No such config attribute {name}")


# Only expose the library config keys
__all__ = list(library_config.keys())
