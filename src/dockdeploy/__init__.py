"""
dockdeploy - one-shot Docker application deployment over SSH
"""

__version__ = "1.0.0"

from .core import Deployer, DeployError

__all__ = ["Deployer", "DeployError"]
