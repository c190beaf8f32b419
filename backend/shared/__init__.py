"""
Shared module for common utilities used by the SSE gateway and its tooling.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging with pod name stamping

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.logging import get_logger, setup_logging
    from shared.utils.exceptions import ClientNotFoundError, ValidationError
"""
