"""
Pluggable media resolvers for AMD Bridge.

Each resolver answers id lookups and catalog searches for songs, albums,
playlists and stations.  The factory function ``create_resolver`` reads
config.json and returns the configured one.

Supported types:
  - ``library``      – in-memory media file (default; empty when no file given)
  - ``apple_music``  – Apple Music API via aiohttp
"""

import logging

import aiohttp

from ..config import cfg
from .apple_music import AppleMusicResolver
from .base import ResolverError, ResolverGateway
from .library import LibraryResolver

logger = logging.getLogger(__name__)

__all__ = [
    "ResolverError",
    "ResolverGateway",
    "AppleMusicResolver",
    "LibraryResolver",
    "create_resolver",
]


def create_resolver(session: aiohttp.ClientSession | None = None) -> ResolverGateway:
    """Create the resolver selected by config.json.

    Reads from config.json "resolver" section:
      type          – "library" (default) or "apple_music"
      library_file  – JSON media file for the library resolver
      storefront    – Apple Music storefront (default "us")
    """
    res_type = str(cfg("resolver", "type", default="library")).lower()

    if res_type == "apple_music":
        storefront = cfg("resolver", "storefront", default="us")
        logger.info("Resolver: Apple Music API (storefront %s)", storefront)
        return AppleMusicResolver(storefront=storefront, session=session)

    path = cfg("resolver", "library_file", default="")
    if path:
        logger.info("Resolver: media file %s", path)
        return LibraryResolver.from_file(path)
    logger.warning("Resolver: no library_file configured — every lookup will miss")
    return LibraryResolver()
