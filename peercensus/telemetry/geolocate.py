"""Offline IP geolocation against a MaxMind-format (.mmdb) database.

The database is opened read-only (memory-mapped) for every lookup, so
lookups share no state and may run concurrently with each other and with
log writes.
"""
from __future__ import annotations

import ipaddress
import logging
import math
from typing import Any, Callable

import maxminddb

from peercensus import config
from peercensus.errors import GeoLookupError
from peercensus.models import Geolocation

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

# Entry paths inside a City database record
_CONTINENT_PATH = ("continent", "names", "en")
_COUNTRY_PATH = ("country", "names", "en")
_SUBDIVISION_PATH = ("subdivisions", 0, "names", "en")
_CITY_PATH = ("city", "names", "en")
_LONGITUDE_PATH = ("location", "longitude")
_LATITUDE_PATH = ("location", "latitude")


def _open_mmap(path: str):
    return maxminddb.open_database(path, maxminddb.MODE_MMAP)


def parse_ip_literal(address: str) -> IPAddress | None:
    """Extract the IP from ``host:port`` or ``[host]:port``.

    Returns None for anything else, including hidden-service names.
    """
    if address.startswith("[") and "]" in address:
        host = address[1:address.index("]")]
        try:
            return ipaddress.IPv6Address(host)
        except ValueError:
            return None
    if ":" in address:
        host = address[:address.index(":")]
        try:
            return ipaddress.IPv4Address(host)
        except ValueError:
            return None
    return None


def _lookup_path(entry: Any, path: tuple) -> Any:
    node = entry
    for key in path:
        if isinstance(key, int):
            if not isinstance(node, list) or len(node) <= key:
                return None
        elif not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def _text(entry: Any, path: tuple) -> str | None:
    value = _lookup_path(entry, path)
    if not isinstance(value, str) or not value:
        return None
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return None
    return value


def _coordinate(entry: Any, path: tuple, low: float, high: float) -> float | None:
    value = _lookup_path(entry, path)
    # bool and int are not double entries
    if not isinstance(value, float) or not math.isfinite(value):
        return None
    if value < low or value > high:
        return None
    return value


class GeoLocator:
    """Resolves transport addresses to a Geolocation."""

    def __init__(
        self,
        database_path: str = config.GEO_DATABASE_PATH,
        opener: Callable[[str], Any] = _open_mmap,
    ) -> None:
        self.database_path = database_path
        self._opener = opener

    def resolve(self, address: str) -> Geolocation:
        """Geolocate an address literal.

        Non-IP identifiers resolve to an empty Geolocation without touching
        the database. Raises GeoLookupError if the database cannot be
        opened or queried.
        """
        ip = parse_ip_literal(address)
        if ip is None:
            return Geolocation()

        entry = self._query(ip)
        if not entry:
            return Geolocation()
        return self._from_entry(entry)

    def _query(self, ip: IPAddress) -> Any:
        try:
            reader = self._opener(self.database_path)
        except (OSError, ValueError, maxminddb.InvalidDatabaseError) as e:
            raise GeoLookupError(
                f"Opening the IP geolocate database failed: {e}"
            ) from e
        try:
            return reader.get(ip)
        except (OSError, ValueError, maxminddb.InvalidDatabaseError) as e:
            raise GeoLookupError(
                f"Looking up the IP address in the IP geolocate database failed: {e}"
            ) from e
        finally:
            reader.close()

    @staticmethod
    def _from_entry(entry: Any) -> Geolocation:
        longitude = _coordinate(
            entry, _LONGITUDE_PATH, config.MIN_LONGITUDE, config.MAX_LONGITUDE,
        )
        latitude = None
        if longitude is not None:
            latitude = _coordinate(
                entry, _LATITUDE_PATH, config.MIN_LATITUDE, config.MAX_LATITUDE,
            )
            if latitude is None:
                logger.debug("Discarding longitude without a valid latitude")
                longitude = None

        return Geolocation(
            continent=_text(entry, _CONTINENT_PATH),
            country=_text(entry, _COUNTRY_PATH),
            subdivision=_text(entry, _SUBDIVISION_PATH),
            city=_text(entry, _CITY_PATH),
            longitude=longitude,
            latitude=latitude,
        )
