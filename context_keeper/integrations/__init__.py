"""
Clients for external services.
"""

from .anthropic import AnthropicClient

__all__ = ["AnthropicClient"]
