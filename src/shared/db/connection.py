"""Supabase connection utilities.

The durable job property space (checkpoints, trigger ids, execution windows
and leases) is stored in Supabase when the ``supabase`` backend is selected.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class SupabaseConfig:
    """Configuration for Supabase connection.

    Attributes:
        url: Supabase project URL
        key: Supabase API key (service role for server-side jobs)
        schema: Database schema holding the job tables
    """

    url: str
    key: str
    schema: str = "public"

    @classmethod
    def from_env(
        cls,
        url_var: str = "SUPABASE_URL",
        key_var: str = "SUPABASE_KEY",
        schema_var: str = "SUPABASE_SCHEMA",
    ) -> SupabaseConfig:
        """Create configuration from environment variables.

        Raises:
            ValueError: If required environment variables are not set
        """
        url = os.getenv(url_var)
        key = os.getenv(key_var)
        if not url or not key:
            raise ValueError(
                f"Missing required environment variables: {url_var} and/or {key_var}. "
                f"Please set them in your .env file or environment."
            )
        return cls(url=url, key=key, schema=os.getenv(schema_var, "public"))


def get_supabase_client(config: Optional[SupabaseConfig] = None):
    """Create a Supabase client scoped to the configured schema.

    Example:
        >>> client = get_supabase_client()
        >>> client.table("job_properties").select("*").execute()
    """
    from supabase import ClientOptions, create_client

    if config is None:
        config = SupabaseConfig.from_env()

    logger.debug("Creating Supabase client for %s (schema=%s)", config.url, config.schema)
    return create_client(config.url, config.key, options=ClientOptions(schema=config.schema))
