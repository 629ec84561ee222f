"""
Observability Package — logging setup + tracing

Provides:
  configure_logging   process-wide logging.basicConfig from settings
  TracingConfig       optional LangSmith initialisation
  traced              decorator for timing pipeline stages
"""

from lumio.observability.tracing import TracingConfig, configure_logging, traced

__all__ = ["TracingConfig", "configure_logging", "traced"]
