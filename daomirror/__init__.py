"""
DAO Mirror Package

Reference model and differential harness for a staking + campaign voting
governance protocol. Core imports are lazily loaded so that importing the
package does not pull in the harness:

    from daomirror.dao import ReferenceModel
    from daomirror.harness import DifferentialRunner
    from daomirror.exceptions import ModelError
"""

__version__ = "1.0.0"


def __getattr__(name):
    """Lazy access to the most used entry points."""
    if name == 'ReferenceModel':
        from .dao import ReferenceModel
        return ReferenceModel
    elif name == 'DifferentialRunner':
        from .harness import DifferentialRunner
        return DifferentialRunner
    elif name == 'ModelError':
        from .exceptions import ModelError
        return ModelError
    raise AttributeError(f"module 'daomirror' has no attribute {name!r}")

__all__ = ['ReferenceModel', 'DifferentialRunner', 'ModelError']
