"""Temporal client factory.

Creates connections to a Temporal server using settings from the
environment (loaded from .env by core.config). A local dev server needs
only TEMPORAL_ENDPOINT; Temporal Cloud additionally needs TEMPORAL_API_KEY,
which switches TLS on.
"""

from temporalio.client import Client

from core import config


async def get_temporal_client() -> Client:
    """Create and return a Temporal client.
    
    Reads configuration from environment variables:
    - TEMPORAL_ENDPOINT: Server endpoint (default "localhost:7233")
    - TEMPORAL_NAMESPACE: Namespace (default "default")
    - TEMPORAL_API_KEY: Temporal Cloud API key (optional)
    
    Returns:
        Connected Temporal client
        
    Raises:
        ValueError: If TEMPORAL_ENDPOINT is set to an empty value
    """
    endpoint = config.TEMPORAL_ENDPOINT
    if not endpoint:
        raise ValueError(
            "TEMPORAL_ENDPOINT environment variable is empty. "
            "Set to your Temporal endpoint (e.g., 'localhost:7233')"
        )
    
    api_key = config.TEMPORAL_API_KEY
    if api_key:
        return await Client.connect(
            target_host=endpoint,
            namespace=config.TEMPORAL_NAMESPACE,
            tls=True,
            api_key=api_key,
        )
    
    return await Client.connect(
        target_host=endpoint,
        namespace=config.TEMPORAL_NAMESPACE,
    )
