"""
Timeout configuration for outbound calls to regulatory portals and the LLM gateway.
"""

from typing import Dict, Any

# API Client Timeouts (in seconds)
API_TIMEOUTS = {
    # FDIC BankFind financials - peer fan-out uses this per request
    "fdic": 15,

    # Firecrawl waits for dynamic content before scraping
    "firecrawl": 60,

    "fred": 20,
    "sec_edgar": 20,
    "web_scraping": 30,
    "custom_api": 30,

    # LLM gateway
    "llm_analysis": 120,
    "llm_chat": 300,
}

# Streaming Configuration
STREAMING_CONFIG = {
    # How often sse-starlette sends a keepalive comment (seconds)
    "ping_interval": 15,
}

# Fan-out limits
PEER_FETCH_CONFIG = {
    "max_peers": 12,
}


def get_timeout_for_operation(operation: str) -> int:
    """
    Get the appropriate timeout for a specific operation.

    Args:
        operation: The operation type (e.g., 'fdic', 'firecrawl')

    Returns:
        Timeout in seconds
    """
    return API_TIMEOUTS.get(operation, 30)


def get_streaming_config() -> Dict[str, Any]:
    """Get the complete streaming configuration."""
    return STREAMING_CONFIG.copy()
