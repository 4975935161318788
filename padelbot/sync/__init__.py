# padelbot/sync/__init__.py
from .synchronizer import SyncResult, Synchronizer, MAX_PASSES
