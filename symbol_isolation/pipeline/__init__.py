"""
Symbol Isolation Pipeline

- SymbolIsolationPipeline: one symbol, skip / process / fallback
- SymbolBatchProcessor: bounded pool with generation-token commits
"""

from symbol_isolation.pipeline.orchestrator import SymbolIsolationPipeline
from symbol_isolation.pipeline.batch import BatchResult, IsolationRequest, SymbolBatchProcessor

__all__ = ["SymbolIsolationPipeline", "SymbolBatchProcessor", "IsolationRequest", "BatchResult"]
