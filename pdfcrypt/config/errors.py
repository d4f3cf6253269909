from ..config_utils import ConfigurationError

__all__ = ['ConfigurationError']
