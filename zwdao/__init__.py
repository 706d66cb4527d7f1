"""
ZWDAO Governance Package

Core imports are lazily loaded so that importing a submodule does not
pull in the whole node. For direct module access, import from submodules:

    from zwdao.governance import GovernanceCore
    from zwdao.treasury import Treasury
    from zwdao.tokens import GovernanceToken
    from zwdao.state import DAOStateManager, DAOTransaction
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'GovernanceCore':
        from .governance import GovernanceCore
        return GovernanceCore
    elif name == 'Treasury':
        from .treasury import Treasury
        return Treasury
    elif name == 'GovernanceToken':
        from .tokens import GovernanceToken
        return GovernanceToken
    elif name == 'DAOStateManager':
        from .state import DAOStateManager
        return DAOStateManager
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'zwdao' has no attribute {name!r}")

__all__ = ['GovernanceCore', 'Treasury', 'GovernanceToken', 'DAOStateManager', 'load_config']
