# storefront/domain/results.py
"""
Use cases return ``Ok(value)`` or ``Error(StorefrontError)`` instead of
raising across service boundaries. Routers turn an ``Error`` into an HTTP
error (see storefront.api.deps.raise_for).
"""
from kungfu import Error, Ok, Result

from storefront.domain.errors import StorefrontError

__all__ = ("Error", "Ok", "Result", "error_of")


def error_of(result: Result) -> StorefrontError | None:
    match result:
        case Error(error):
            return error
    return None
