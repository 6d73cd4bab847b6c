"""
Kami Token Economy Package

Core imports are lazily loaded so that importing a submodule does not pull
in the whole package. For direct module access, import from submodules:

    from kami.tokens import KamiToken
    from kami.staking import StakeRewardsEngine
    from kami.exceptions import ExceedsStakeError
"""

__version__ = "1.0.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'KamiToken':
        from .tokens import KamiToken
        return KamiToken
    elif name == 'StakeRewardsEngine':
        from .staking import StakeRewardsEngine
        return StakeRewardsEngine
    elif name == 'ChainContext':
        from .chain import ChainContext
        return ChainContext
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'kami' has no attribute {name!r}")

__all__ = ['KamiToken', 'StakeRewardsEngine', 'ChainContext', 'load_config']
