"""Exit codes shared by CLI commands. A clean run exits with 0."""

SYSTEM_EXIT_CODE = 1
VALIDATION_EXIT_CODE = 2
PROVIDER_EXIT_CODE = 3

__all__ = [
    "PROVIDER_EXIT_CODE",
    "SYSTEM_EXIT_CODE",
    "VALIDATION_EXIT_CODE",
]
