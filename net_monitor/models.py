"""Dataclasses for speedtest servers, results and host locations.

Every model decodes from the JSON emitted by the speedtest CLI or the
geolocation service and encodes back to the document form stored in the
result store. Keys the models do not know about are kept in ``extra`` and
written back out, so a decode/encode pass does not lose fields.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

_MAC_SEPARATORS = re.compile(r"[:\-.]")


def _extra(data: Dict[str, Any], known: tuple) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key not in known}


def _first_float(*values: Any) -> float:
    for value in values:
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return float(value)
    return 0.0


def normalize_mac(value: Optional[str]) -> str:
    """Return ``value`` as an upper-case, colon separated hardware address."""
    if not value:
        return ""
    digits = _MAC_SEPARATORS.sub("", value)
    if len(digits) not in (12, 16) or not all(ch in "0123456789abcdefABCDEF" for ch in digits):
        raise ValueError(f"invalid hardware address: {value!r}")
    return ":".join(digits[i:i + 2] for i in range(0, len(digits), 2)).upper()


def parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    clean = raw.replace("Z", "+00:00") if raw.endswith("Z") else raw
    try:
        return datetime.fromisoformat(clean)
    except ValueError:
        return None


@dataclass(frozen=True)
class GeoPoint:
    lat: float = 0.0
    lon: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeoPoint":
        # ipapi.co reports latitude/longitude, other sources use lat/lon and
        # stored documents carry a nested geo_point.
        nested = data.get("geo_point")
        if isinstance(nested, dict):
            data = nested
        return cls(
            lat=_first_float(data.get("latitude"), data.get("lat")),
            lon=_first_float(data.get("longitude"), data.get("lon")),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class Location:
    """Approximate location of the host, as reported by a geolocation service."""

    ip: str = ""
    city: str = ""
    region: str = ""
    country: str = ""
    country_code: str = ""
    country_code_iso3: str = ""
    country_capital: str = ""
    country_tld: str = ""
    country_name: str = ""
    in_eu: bool = False
    postal: str = ""
    timezone: str = ""
    utc_offset: str = ""
    country_calling_code: str = ""
    currency: str = ""
    currency_name: str = ""
    languages: str = ""
    country_area: float = 0.0
    country_population: float = 0.0
    asn: str = ""
    org: str = ""
    geo_point: GeoPoint = field(default_factory=GeoPoint)

    _TEXT_FIELDS = (
        "ip",
        "city",
        "region",
        "country",
        "country_code",
        "country_code_iso3",
        "country_capital",
        "country_tld",
        "country_name",
        "postal",
        "timezone",
        "utc_offset",
        "country_calling_code",
        "currency",
        "currency_name",
        "languages",
        "asn",
        "org",
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Location":
        values: Dict[str, Any] = {name: str(data.get(name) or "") for name in cls._TEXT_FIELDS}
        return cls(
            in_eu=bool(data.get("in_eu", False)),
            country_area=_first_float(data.get("country_area")),
            country_population=_first_float(data.get("country_population")),
            geo_point=GeoPoint.from_dict(data),
            **values,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {name: getattr(self, name) for name in self._TEXT_FIELDS}
        payload["in_eu"] = self.in_eu
        payload["country_area"] = self.country_area
        payload["country_population"] = self.country_population
        payload["geo_point"] = self.geo_point.to_dict()
        return payload


@dataclass(frozen=True)
class Server:
    """A measurement endpoint offered by the speedtest CLI."""

    id: int
    name: str = ""
    location: str = ""
    country: str = ""
    host: str = ""
    port: int = 0
    ip: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ("id", "name", "location", "country", "host", "port", "ip")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Server":
        return cls(
            id=int(data.get("id") or 0),
            name=data.get("name", ""),
            location=data.get("location", ""),
            country=data.get("country", ""),
            host=data.get("host", ""),
            port=int(data.get("port") or 0),
            ip=data.get("ip") or None,
            extra=_extra(data, cls._KEYS),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "country": self.country,
            "host": self.host,
            "port": self.port,
        }
        if self.ip:
            payload["ip"] = self.ip
        payload.update(self.extra)
        return payload


Endpoint = Server


@dataclass(frozen=True)
class ServerList:
    type: str = ""
    timestamp: str = ""
    servers: List[Server] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerList":
        return cls(
            type=data.get("type", ""),
            timestamp=data.get("timestamp", ""),
            servers=[Server.from_dict(item) for item in data.get("servers") or []],
        )

    @classmethod
    def from_json(cls, raw: str) -> "ServerList":
        return cls.from_dict(json.loads(raw))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "timestamp": self.timestamp,
            "servers": [server.to_dict() for server in self.servers],
        }


@dataclass(frozen=True)
class Ping:
    jitter: float = 0.0
    latency: float = 0.0
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ping":
        return cls(
            jitter=data.get("jitter", 0.0),
            latency=data.get("latency", 0.0),
            extra=_extra(data, ("jitter", "latency")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"jitter": self.jitter, "latency": self.latency, **self.extra}


@dataclass(frozen=True)
class Speed:
    """Throughput of one direction: bytes per second, bytes moved, elapsed ms."""

    bandwidth: int = 0
    bytes: int = 0
    elapsed: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Speed":
        return cls(
            bandwidth=data.get("bandwidth", 0),
            bytes=data.get("bytes", 0),
            elapsed=data.get("elapsed", 0),
            extra=_extra(data, ("bandwidth", "bytes", "elapsed")),
        )

    @property
    def mbps(self) -> float:
        return (self.bandwidth or 0) * 8 / 1_000_000

    def to_dict(self) -> Dict[str, Any]:
        return {"bandwidth": self.bandwidth, "bytes": self.bytes, "elapsed": self.elapsed, **self.extra}


@dataclass(frozen=True)
class Interface:
    internal_ip: str = ""
    name: str = ""
    mac_addr: str = ""
    is_vpn: bool = False
    external_ip: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Interface":
        return cls(
            internal_ip=data.get("internalIp", ""),
            name=data.get("name", ""),
            mac_addr=normalize_mac(data.get("macAddr")),
            is_vpn=bool(data.get("isVpn", False)),
            external_ip=data.get("externalIp", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "internalIp": self.internal_ip,
            "name": self.name,
            "macAddr": self.mac_addr,
            "isVpn": self.is_vpn,
            "externalIp": self.external_ip,
        }


@dataclass(frozen=True)
class ResultLink:
    id: str = ""
    url: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResultLink":
        return cls(id=data.get("id", ""), url=data.get("url", ""), extra=_extra(data, ("id", "url")))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "url": self.url, **self.extra}


@dataclass(frozen=True)
class MeasurementResult:
    """One speedtest run. ``result.id`` is unique per run."""

    type: str = ""
    timestamp: str = ""
    ping: Ping = field(default_factory=Ping)
    download: Speed = field(default_factory=Speed)
    upload: Speed = field(default_factory=Speed)
    packet_loss: Optional[float] = None
    isp: str = ""
    interface: Interface = field(default_factory=Interface)
    server: Server = field(default_factory=lambda: Server(id=0))
    result: ResultLink = field(default_factory=ResultLink)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = (
        "type",
        "timestamp",
        "ping",
        "download",
        "upload",
        "packetLoss",
        "isp",
        "interface",
        "server",
        "result",
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeasurementResult":
        return cls(
            type=data.get("type", ""),
            timestamp=data.get("timestamp", ""),
            ping=Ping.from_dict(data.get("ping") or {}),
            download=Speed.from_dict(data.get("download") or {}),
            upload=Speed.from_dict(data.get("upload") or {}),
            packet_loss=data.get("packetLoss"),
            isp=data.get("isp", ""),
            interface=Interface.from_dict(data.get("interface") or {}),
            server=Server.from_dict(data.get("server") or {}),
            result=ResultLink.from_dict(data.get("result") or {}),
            extra=_extra(data, cls._KEYS),
        )

    @classmethod
    def from_json(cls, raw: str) -> "MeasurementResult":
        return cls.from_dict(json.loads(raw))

    @property
    def result_id(self) -> str:
        return self.result.id

    @property
    def parsed_timestamp(self) -> Optional[datetime]:
        return parse_timestamp(self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type,
            "timestamp": self.timestamp,
            "ping": self.ping.to_dict(),
            "download": self.download.to_dict(),
            "upload": self.upload.to_dict(),
        }
        if self.packet_loss is not None:
            payload["packetLoss"] = self.packet_loss
        payload.update(
            {
                "isp": self.isp,
                "interface": self.interface.to_dict(),
                "server": self.server.to_dict(),
                "result": self.result.to_dict(),
            }
        )
        payload.update(self.extra)
        return payload


@dataclass(frozen=True)
class CombinedDocument:
    """A measurement result together with the location known when it was stored."""

    result: MeasurementResult
    location: Optional[Location] = None

    @property
    def document_id(self) -> str:
        return self.result.result_id

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"result": self.result.to_dict()}
        # Absent rather than null: "no location yet" must not read as (0, 0).
        if self.location is not None:
            payload["location"] = self.location.to_dict()
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def merge(result: MeasurementResult, location: Optional[Location]) -> CombinedDocument:
    return CombinedDocument(result=result, location=location)
