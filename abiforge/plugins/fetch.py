"""Fetch plugin — resolve ABIs over HTTP with an on-disk fallback cache.

Per contract::

    request ──ok──▶ write cache ──▶ contract
       │
       └─fail──▶ read cache ──hit──▶ contract (stale)
                      │
                      └─miss──▶ re-raise the original error
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Mapping, Optional, TypeVar, Union

import requests

from abiforge import logger
from abiforge.cache import AbiCache
from abiforge.errors import ConfigError
from abiforge.models import AbiItem, Address, ContractConfig, ContractSource

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Request / result types
# ---------------------------------------------------------------------------


@dataclass
class Request:
    """An HTTP request that should return an ABI."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    timeout: float = 30.0


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    stale: bool = False

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: Exception

    @property
    def ok(self) -> bool:
        return False


FetchResult = Union[Ok[list[AbiItem]], Err]


def resolve_with_fallback(result: FetchResult, cached: Any | None) -> FetchResult:
    """Pick the value to use for a contract.

    A live success wins. On failure, a cache hit is returned marked ``stale``;
    with no cache entry the original error is kept.
    """
    if isinstance(result, Ok):
        return result
    if cached is not None:
        return Ok(cached, stale=True)
    return result


def default_cache_key(contract: ContractSource) -> str:
    """Cache key for *contract*: its address, or a canonical JSON of the map."""
    address = contract.address
    if isinstance(address, str):
        return address
    if address is None:
        return contract.name
    return json.dumps(
        {str(k): v for k, v in sorted(address.items())}, separators=(",", ":")
    )


def default_parse(response: requests.Response) -> list[AbiItem]:
    response.raise_for_status()
    value = response.json()
    if not isinstance(value, list):
        raise ValueError("Response body is not an ABI array")
    return value


# ---------------------------------------------------------------------------
# Plugin
# ---------------------------------------------------------------------------


class FetchPlugin:
    """Fetches and parses contract ABIs from a network resource."""

    watch = None

    def __init__(
        self,
        contracts: list[ContractSource],
        request: Callable[[Optional[Address]], Request],
        *,
        cache: AbiCache | None = None,
        parse: Callable[[requests.Response], list[AbiItem]] = default_parse,
        get_cache_key: Callable[[ContractSource], str] = default_cache_key,
        name: str = "Fetch",
        session: requests.Session | None = None,
    ) -> None:
        self.name = name
        self.sources = list(contracts)
        self.request = request
        self.cache = cache or AbiCache()
        self.parse = parse
        self.get_cache_key = get_cache_key
        self.session = session or requests.Session()

    def validate(self) -> None:
        self.cache.ensure()

    def fetch(self, source: ContractSource) -> FetchResult:
        """Perform the live request for *source*; never raises."""
        try:
            req = self.request(source.address)
            response = self.session.request(
                req.method,
                req.url,
                headers=req.headers or None,
                params=req.params or None,
                timeout=req.timeout,
            )
            return Ok(self.parse(response))
        except Exception as exc:  # network and parse failures take the same path
            return Err(exc)

    def resolve(self, source: ContractSource) -> ContractConfig:
        key = self.get_cache_key(source)
        result = self.fetch(source)
        if isinstance(result, Ok):
            try:
                self.cache.write(key, result.value)
            except OSError as exc:
                logger.warn(f"{self.name}: could not cache ABI for {source.name}: {exc}")
            cached = None
        else:
            cached = self.cache.read(key)
            if not isinstance(cached, list):
                cached = None

        result = resolve_with_fallback(result, cached)
        if isinstance(result, Err):
            raise result.error
        return ContractConfig(name=source.name, abi=result.value, address=source.address)

    def contracts(self) -> list[ContractConfig]:
        out: list[ContractConfig] = []
        for source in self.sources:
            contract = self.resolve(source)
            if not contract.abi:
                continue
            out.append(contract)
        return out


# ---------------------------------------------------------------------------
# Construction from config
# ---------------------------------------------------------------------------


def url_request(
    url: str,
    *,
    method: str = "GET",
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, Any] | None = None,
    timeout: float = 30.0,
) -> Callable[[Optional[Address]], Request]:
    """Build a ``request`` callable from a URL template.

    ``{address}`` in the URL or in a param value is replaced with the
    contract address (string addresses only).
    """

    def _fill(value: Any, address: Optional[Address]) -> Any:
        if isinstance(value, str) and isinstance(address, str):
            return value.replace("{address}", address)
        return value

    def _request(address: Optional[Address]) -> Request:
        return Request(
            url=_fill(url, address),
            method=method,
            headers=dict(headers or {}),
            params={k: _fill(v, address) for k, v in (params or {}).items()},
            timeout=timeout,
        )

    return _request


def field_parser(abi_key: str) -> Callable[[requests.Response], list[AbiItem]]:
    """Parse the ABI from field *abi_key* of a JSON body.

    APIs such as Etherscan return the ABI as a JSON-encoded string; such a
    value is decoded.
    """

    def _parse(response: requests.Response) -> list[AbiItem]:
        response.raise_for_status()
        value = response.json()
        for part in abi_key.split("."):
            value = value[part]
        if isinstance(value, str):
            value = json.loads(value)
        if not isinstance(value, list):
            raise ValueError(f"Field '{abi_key}' does not contain an ABI array")
        return value

    return _parse


def from_config(entry: Mapping[str, Any], *, cache: AbiCache) -> FetchPlugin:
    """Create a ``FetchPlugin`` from a ``type: fetch`` config entry."""
    url = entry.get("url")
    if not isinstance(url, str) or not url:
        raise ConfigError("fetch plugin requires a 'url'")

    raw_contracts = entry.get("contracts", [])
    if not isinstance(raw_contracts, list):
        raise ConfigError("fetch plugin 'contracts' must be a list")
    sources: list[ContractSource] = []
    for raw in raw_contracts:
        if not isinstance(raw, dict) or not raw.get("name"):
            raise ConfigError("fetch plugin contracts need at least a 'name'")
        sources.append(ContractSource(name=str(raw["name"]), address=raw.get("address")))

    try:
        timeout = float(entry.get("timeout", 30.0))
    except (TypeError, ValueError):
        raise ConfigError(
            f"fetch plugin 'timeout' must be a number, got {entry.get('timeout')!r}"
        ) from None

    request = url_request(
        url,
        method=str(entry.get("method", "GET")).upper(),
        headers=entry.get("headers") or {},
        params=entry.get("params") or {},
        timeout=timeout,
    )
    abi_key = entry.get("abi_key")
    parse = field_parser(str(abi_key)) if abi_key else default_parse
    return FetchPlugin(
        sources,
        request,
        cache=cache,
        parse=parse,
        name=str(entry.get("name", "Fetch")),
    )
