from lockorder.ingest.adapter_contract import SourceAdapter
from lockorder.ingest.python_adapter import PythonAdapter

__all__ = ["PythonAdapter", "SourceAdapter"]
