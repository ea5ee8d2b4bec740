"""Dispatch pipeline for microhttp.

WARNING: This is an internal module used by ``MicroHttp``.
Do not call directly from user code.
"""

from microhttp._internal.dispatch.batch import BatchExecutor
from microhttp._internal.dispatch.chain import run_request_chain, run_response_chain
from microhttp._internal.dispatch.client import Dispatcher
from microhttp._internal.dispatch.redaction import redact_headers, redact_url
from microhttp._internal.dispatch.streaming import ResponseStream

__all__ = [
    "BatchExecutor",
    "Dispatcher",
    "ResponseStream",
    "redact_headers",
    "redact_url",
    "run_request_chain",
    "run_response_chain",
]
