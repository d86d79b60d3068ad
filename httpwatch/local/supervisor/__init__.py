"""
The Supervisor package.
Keeps externally launched HTTP servers alive.

This package contains the central Supervisor loop and its helper modules,
which together handle probing, starting, stopping and restarting every
managed application.
"""
from .contract import LifecycleState, Manageable
from .application import ManagedApplication
from .supervisor import Supervisor

__all__ = ['LifecycleState', 'Manageable', 'ManagedApplication', 'Supervisor']
