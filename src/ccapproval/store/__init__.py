from ccapproval.store.interface import ThreadStore
from ccapproval.store.json_file import JsonFileThreadStore
from ccapproval.store.models import SessionThreadMapping, ThreadStatus

__all__ = ["JsonFileThreadStore", "SessionThreadMapping", "ThreadStatus", "ThreadStore"]
