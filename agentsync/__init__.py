"""
agentsync

Synchronize one agent instructions template to many destination files,
each rendered with its own variables.
"""

from .config import Configuration, SyncOptions, Target, load_config
from .sync import SyncReport, TargetResult, TemplateSync

__version__ = '0.1.0'
__all__ = [
    'Configuration',
    'SyncOptions',
    'Target',
    'load_config',
    'SyncReport',
    'TargetResult',
    'TemplateSync',
]
