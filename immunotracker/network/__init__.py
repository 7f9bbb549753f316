"""Network layer: request models and the HTTP transport.

The fetch router lives in :mod:`immunotracker.network.router`.
"""

from .models import FetchRequest, FetchResponse
from .transport import HTTPTransport

__all__ = ["FetchRequest", "FetchResponse", "HTTPTransport"]
