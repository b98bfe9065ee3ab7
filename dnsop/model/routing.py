"""Routing model: how the addresses of one hostname are exposed in DNS."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from dnsop.base.exceptions import RoutingValidationError
from dnsop.model.selector import LabelSelector


class AddressKind(str, Enum):
    IP_ADDRESS = "IPAddress"
    HOSTNAME = "Hostname"


class RoutingStrategy(str, Enum):
    SIMPLE = "simple"
    LOAD_BALANCED = "loadbalanced"


@dataclass(frozen=True)
class CustomWeight:
    """Weight applied when *selector* matches the target object's labels."""

    weight: int
    selector: LabelSelector = field(default_factory=LabelSelector)


@dataclass(frozen=True)
class LoadBalancing:
    cluster_id: str
    default_geo_code: str
    default_weight: int


@dataclass(frozen=True)
class Routing:
    """Validated routing configuration.

    Attributes:
        addresses: Address to kind. ``None`` means no addresses were given.
        strategy: :class:`RoutingStrategy`, or any other string, which the
            generator rejects as unknown.
        default_geo_code: Geo whose branch also serves as the catch-all.
        default_weight: Weight of a target no custom weight selects.
        custom_weights: Evaluated in order; the first match wins.
        cluster_id: Identity of the writer's cluster.
    """

    addresses: Mapping[str, AddressKind] | None = None
    strategy: RoutingStrategy | str | None = None
    default_geo_code: str = ""
    default_weight: int = 0
    custom_weights: tuple[CustomWeight, ...] = ()
    cluster_id: str = ""

    def validate(self) -> None:
        """Raise :class:`RoutingValidationError` if a required field is missing.

        Simple routing is not checked further.
        """
        if self.strategy == RoutingStrategy.SIMPLE:
            return
        if not self.strategy or self.addresses is None:
            raise RoutingValidationError("must provide addresses")
        if not self.cluster_id:
            raise RoutingValidationError("cluster ID is required")
        if self.default_weight == 0:
            raise RoutingValidationError("default weight is required")
        if not self.default_geo_code:
            raise RoutingValidationError("default geocode is required")
        for custom in self.custom_weights:
            if custom.weight == 0:
                raise RoutingValidationError("custom weight cannot be zero")
            if custom.selector.is_empty():
                raise RoutingValidationError("custom weight must define non-empty selector")
            try:
                custom.selector.validate_selector()
            except ValueError as e:
                raise RoutingValidationError(f"invalid custom weight selector: {e}") from e

    def get_weight(self, labels: Mapping[str, str]) -> int:
        """Return the first matching custom weight, else the default weight."""
        for custom in self.custom_weights:
            if custom.selector.matches(dict(labels)):
                return custom.weight
        return self.default_weight

    def split_addresses(self) -> tuple[list[str], list[str]]:
        """Partition addresses into sorted ``(ip_targets, hostname_targets)``."""
        ips: list[str] = []
        hosts: list[str] = []
        for address, kind in (self.addresses or {}).items():
            if kind == AddressKind.IP_ADDRESS:
                ips.append(address)
            else:
                hosts.append(address)
        return sorted(ips), sorted(hosts)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Routing:
        """Parse the camelCase JSON form, e.g.::

            {"addresses": {"127.0.0.1": "IPAddress"}, "strategy": "loadbalanced",
             "clusterID": "c1", "defaultGeoCode": "IE", "defaultWeight": 120,
             "customWeights": [{"weight": 100, "selector": {"matchLabels": {"k": "FOO"}}}]}

        The result is not validated; call :meth:`validate` or build it via
        :func:`new_routing`.
        """
        raw_addresses = data.get("addresses")
        addresses = None
        if raw_addresses is not None:
            addresses = {
                addr: AddressKind.IP_ADDRESS if kind == AddressKind.IP_ADDRESS.value
                else AddressKind.HOSTNAME
                for addr, kind in raw_addresses.items()
            }
        strategy = data.get("strategy")
        if strategy in {s.value for s in RoutingStrategy}:
            strategy = RoutingStrategy(strategy)
        try:
            custom_weights = tuple(
                CustomWeight(
                    weight=int(cw.get("weight", 0)),
                    selector=LabelSelector.model_validate(cw.get("selector") or {}),
                )
                for cw in data.get("customWeights") or []
            )
        except PydanticValidationError as e:
            raise RoutingValidationError(f"invalid custom weight selector: {e}") from e
        return cls(
            addresses=addresses,
            strategy=strategy,
            default_geo_code=data.get("defaultGeoCode", ""),
            default_weight=int(data.get("defaultWeight", 0)),
            custom_weights=custom_weights,
            cluster_id=data.get("clusterID", ""),
        )


def new_routing(
    addresses: Mapping[str, AddressKind | str],
    load_balancing: LoadBalancing | None = None,
    custom_weights: tuple[CustomWeight, ...] | list[CustomWeight] = (),
) -> Routing:
    """Build and validate a :class:`Routing`.

    The strategy is ``simple`` unless *load_balancing* is given.

    Raises:
        RoutingValidationError: If the routing is incomplete.
    """
    kinds = {
        addr: kind if isinstance(kind, AddressKind) else AddressKind(kind)
        for addr, kind in addresses.items()
    }
    if load_balancing is None:
        routing = Routing(
            addresses=kinds,
            strategy=RoutingStrategy.SIMPLE,
            custom_weights=tuple(custom_weights),
        )
    else:
        routing = Routing(
            addresses=kinds,
            strategy=RoutingStrategy.LOAD_BALANCED,
            default_geo_code=load_balancing.default_geo_code,
            default_weight=load_balancing.default_weight,
            custom_weights=tuple(custom_weights),
            cluster_id=load_balancing.cluster_id,
        )
    routing.validate()
    return routing
