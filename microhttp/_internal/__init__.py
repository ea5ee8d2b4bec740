"""Internal modules for microhttp.

WARNING: This package contains the machinery behind ``MicroHttp``.
These are not intended for direct use in application code.

Modules:
    dispatch - Request pipeline, interceptor chains, batch execution
    codec - Payload encoding and decoding
    http - Shared HTTP client configuration
"""
