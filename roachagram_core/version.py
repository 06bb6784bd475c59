"""
Roachagram Version Management - Centralized version for all components

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

# =============================================================================
# Roachagram Version - Single Source of Truth
# =============================================================================

__version__ = "0.1.0"

BUILD_DATE = "2026-10-19"


def get_short_banner() -> str:
    """Get a compact version banner."""
    return f"Roachagram v{__version__} | {BUILD_DATE}"
