"""AWS Route 53 implementation of the provider blueprint."""

from __future__ import annotations

from typing import Any, NoReturn

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from dnsop.base.config import AWSConfig
from dnsop.base.exceptions import (
    DNSProviderError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
    TransientProviderError,
    ZoneNotFoundError,
)
from dnsop.base.provider import ProviderBlueprint
from dnsop.model.endpoint import (
    PROVIDER_SPECIFIC_GEO_CODE,
    PROVIDER_SPECIFIC_WEIGHT,
    TXT_RECORD,
    WILDCARD_GEO,
    Changes,
    Endpoint,
    Zone,
)

_ERROR_MAP: dict[str, type[DNSProviderError]] = {
    "NoSuchHostedZone": ZoneNotFoundError,
    "Throttling": TransientProviderError,
    "ThrottlingException": TransientProviderError,
    "PriorRequestNotComplete": TransientProviderError,
    "ServiceUnavailable": TransientProviderError,
    "InternalError": TransientProviderError,
}

CONTINENT_CODES = frozenset({"AF", "AN", "AS", "EU", "OC", "NA", "SA"})

_TXT_CHUNK = 255


def _handle(e: ClientError, msg: str) -> NoReturn:
    code = e.response["Error"]["Code"]
    exc = _ERROR_MAP.get(code)
    if exc is None and code == "InvalidChangeBatch":
        detail = e.response["Error"].get("Message", "")
        if "already exists" in detail:
            exc = RecordAlreadyExistsError
        elif "not found" in detail:
            exc = RecordNotFoundError
    raise (exc or DNSProviderError)(f"{msg}: {e}") from e


def _unescape(name: str) -> str:
    # Route 53 returns '*' as an octal escape.
    return name.replace("\\052", "*")


def _quote_txt(value: str) -> str:
    chunks = [value[i:i + _TXT_CHUNK] for i in range(0, len(value), _TXT_CHUNK)] or [""]
    return " ".join(f'"{chunk}"' for chunk in chunks)


def _unquote_txt(value: str) -> str:
    value = value.strip()
    if not value.startswith('"'):
        return value
    return "".join(part for part in value[1:-1].split('" "'))


def geo_location_for(geo_code: str) -> dict[str, str]:
    """Map a ``geo-code`` property to a Route 53 GeoLocation."""
    if geo_code == WILDCARD_GEO:
        return {"CountryCode": "*"}
    if geo_code.upper() in CONTINENT_CODES:
        return {"ContinentCode": geo_code.upper()}
    return {"CountryCode": geo_code.upper()}


def geo_code_for(location: dict[str, str]) -> str:
    if "ContinentCode" in location:
        return location["ContinentCode"]
    return location.get("CountryCode", WILDCARD_GEO)


class Route53Provider(ProviderBlueprint):
    """AWS Route 53 DNS backend.

    Attributes:
        client: boto3 Route 53 client.
        zone_type: "public", "private" or None for every hosted zone.
    """

    def __init__(self, config: AWSConfig) -> None:
        """Create the Route 53 client from *config*.

        ``config.zone_type`` is kept to filter the zone catalog.
        """
        self.zone_type = config.zone_type
        self.client = boto3.client(
            "route53",
            aws_access_key_id=config.aws_access_key_id,
            aws_secret_access_key=config.aws_secret_access_key,
            region_name=config.region_name,
            endpoint_url=config.endpoint_url,
        )

    # --- Zone catalog ---

    def _wanted(self, hosted_zone: dict) -> bool:
        if self.zone_type is None:
            return True
        private = bool(hosted_zone.get("Config", {}).get("PrivateZone"))
        return private == (self.zone_type == "private")

    def list_zones(self) -> list[Zone]:
        """List Route 53 hosted zones, limited to ``zone_type`` when set.

        Returns:
            Zones with the ``/hostedzone/`` prefix stripped from their IDs.

        Raises:
            DNSProviderError: On Route 53 API failure.
        """
        try:
            paginator = self.client.get_paginator("list_hosted_zones")
            return [
                Zone(id=z["Id"].split("/")[-1], domain_name=z["Name"])
                for page in paginator.paginate()
                for z in page.get("HostedZones", [])
                if self._wanted(z)
            ]
        except ClientError as e:
            _handle(e, "Failed to list hosted zones")
        except BotoCoreError as e:
            raise TransientProviderError(f"Failed to list hosted zones: {e}") from e

    # --- Record management ---

    def list_records(self, zone_id: str) -> list[Endpoint]:
        """List all record sets of a hosted zone as endpoints.

        ``SetIdentifier``, ``Weight`` and ``GeoLocation`` are mapped onto the
        ``weight`` and ``geo-code`` provider-specific properties; alias
        records are returned with the alias DNS name as their target.

        Raises:
            ZoneNotFoundError: If the zone does not exist.
            DNSProviderError: On Route 53 API failure.
        """
        try:
            paginator = self.client.get_paginator("list_resource_record_sets")
            return [
                self._to_endpoint(rrset)
                for page in paginator.paginate(HostedZoneId=zone_id)
                for rrset in page.get("ResourceRecordSets", [])
            ]
        except ClientError as e:
            _handle(e, f"Failed to list records in zone '{zone_id}'")
        except BotoCoreError as e:
            raise TransientProviderError(f"Failed to list records in zone '{zone_id}': {e}") from e

    def adjust_endpoints(self, endpoints: list[Endpoint]) -> list[Endpoint]:
        """Rewrite geo codes the way Route 53 stores them.

        Route 53 needs a routing policy on every set-identified record; one
        without weight or geo code gets the default location and is read
        back as ``geo-code: *``. Location codes are stored upper case.
        """
        adjusted = []
        for ep in endpoints:
            geo_code = ep.get_provider_specific(PROVIDER_SPECIFIC_GEO_CODE)
            if geo_code is not None and geo_code != geo_code.upper():
                ep = ep.with_provider_specific(PROVIDER_SPECIFIC_GEO_CODE, geo_code.upper())
            elif geo_code is None and ep.set_identifier and (
                PROVIDER_SPECIFIC_WEIGHT not in ep.provider_specific
            ):
                ep = ep.with_provider_specific(PROVIDER_SPECIFIC_GEO_CODE, WILDCARD_GEO)
            adjusted.append(ep)
        return adjusted

    def apply_changes(self, zone_id: str, changes: Changes) -> None:
        """Submit every change in one atomic change batch, deletions first.

        Raises:
            RecordAlreadyExistsError: A created record set already exists.
            RecordNotFoundError: A deleted record set does not match.
            TransientProviderError: Throttling or a server-side failure.
        """
        batch = [
            {"Action": "DELETE", "ResourceRecordSet": self._to_rrset(ep)}
            for ep in changes.delete + changes.update_old
        ] + [
            {"Action": "CREATE", "ResourceRecordSet": self._to_rrset(ep)}
            for ep in changes.create + changes.update_new
        ]
        if not batch:
            return
        try:
            self.client.change_resource_record_sets(
                HostedZoneId=zone_id,
                ChangeBatch={"Comment": "dnsop", "Changes": batch},
            )
        except ClientError as e:
            _handle(e, f"Failed to apply {len(batch)} changes to zone '{zone_id}'")
        except BotoCoreError as e:
            raise TransientProviderError(f"Failed to apply changes to zone '{zone_id}': {e}") from e

    # --- Conversion ---

    @staticmethod
    def _to_endpoint(rrset: dict[str, Any]) -> Endpoint:
        record_type = rrset["Type"]
        if "AliasTarget" in rrset:
            targets = [rrset["AliasTarget"]["DNSName"]]
        else:
            targets = [rr["Value"] for rr in rrset.get("ResourceRecords", [])]
        if record_type == TXT_RECORD:
            targets = [_unquote_txt(t) for t in targets]
        props: dict[str, str] = {}
        if "Weight" in rrset:
            props[PROVIDER_SPECIFIC_WEIGHT] = str(rrset["Weight"])
        if "GeoLocation" in rrset:
            props[PROVIDER_SPECIFIC_GEO_CODE] = geo_code_for(rrset["GeoLocation"])
        return Endpoint(
            dns_name=_unescape(rrset["Name"]),
            targets=tuple(targets),
            record_type=record_type,
            set_identifier=rrset.get("SetIdentifier", ""),
            record_ttl=rrset.get("TTL", 0),
            provider_specific=props,
        )

    @staticmethod
    def _to_rrset(ep: Endpoint) -> dict[str, Any]:
        values = ep.targets
        if ep.record_type == TXT_RECORD:
            values = tuple(_quote_txt(t) for t in values)
        rrset: dict[str, Any] = {
            "Name": ep.dns_name,
            "Type": ep.record_type,
            "TTL": ep.record_ttl,
            "ResourceRecords": [{"Value": v} for v in values],
        }
        if ep.set_identifier:
            rrset["SetIdentifier"] = ep.set_identifier
            weight = ep.get_provider_specific(PROVIDER_SPECIFIC_WEIGHT)
            geo_code = ep.get_provider_specific(PROVIDER_SPECIFIC_GEO_CODE)
            if weight is not None:
                rrset["Weight"] = int(weight)
            elif geo_code is not None:
                rrset["GeoLocation"] = geo_location_for(geo_code)
            else:
                rrset["GeoLocation"] = geo_location_for(WILDCARD_GEO)
        return rrset
