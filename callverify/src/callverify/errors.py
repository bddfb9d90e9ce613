import json
import traceback

class CallVerifyError(Exception):
    """Base exception for callverify"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

class InputError(CallVerifyError):
    """Invalid CLI or configuration input"""
    pass

class FetchError(CallVerifyError):
    """Network or navigation failure (retryable)"""
    pass

class PaywallError(FetchError):
    """Page content is behind a paywall (never retried)"""
    pass

class RateLimitError(CallVerifyError):
    """Daily request cap or session limit reached (never retried)"""
    pass

class PersistenceError(CallVerifyError):
    """Document store failures"""
    pass

class UnknownError(CallVerifyError):
    """Unexpected errors"""
    pass

def format_error(e: Exception) -> str:
    """Format exception as the JSON error envelope"""

    if isinstance(e, CallVerifyError):
        error_type = e.__class__.__name__
        message = e.message
        details = e.details
    else:
        error_type = "UnknownError"
        message = str(e)
        details = {
            "traceback": traceback.format_exc().splitlines()
        }

    payload = {
        "ok": False,
        "error": {
            "type": error_type,
            "message": message,
            "details": details
        },
        "meta": {
            "version": 1
        }
    }

    return json.dumps(payload, indent=2)
