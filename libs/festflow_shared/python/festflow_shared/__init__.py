from .request_id import RequestIDMiddleware, get_request_id
from .cors import configure_cors
from .health import add_standard_health
from .logging import setup_json_logging
from .errors import install_error_handlers, is_prod_env
from .lifecycle import build_lifespan

__all__ = [
    "RequestIDMiddleware",
    "get_request_id",
    "configure_cors",
    "add_standard_health",
    "setup_json_logging",
    "install_error_handlers",
    "is_prod_env",
    "build_lifespan",
]
