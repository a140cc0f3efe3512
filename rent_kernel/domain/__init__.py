"""
rent_kernel.domain -- Pure kernel value objects (clock).
"""

from rent_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "DeterministicClock", "SystemClock"]
