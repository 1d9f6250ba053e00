import json
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError, ClientError, ConnectTimeoutError, EndpointConnectionError,
    NoCredentialsError, ProfileNotFound, ReadTimeoutError
)

from ...catalog.instance_types import parse_instance_type
from ...core.base import BasePricingCatalog, CapacityClass, CatalogPrice, normalize_architecture
from ...core.exceptions import (
    AWSError, CatalogAuthorizationError, CatalogError, CatalogNotFoundError,
    OperationTimeoutError, TransientCatalogError
)

REGION_LOCATIONS = {
    "us-east-1": "US East (N. Virginia)",
    "us-east-2": "US East (Ohio)",
    "us-west-1": "US West (N. California)",
    "us-west-2": "US West (Oregon)",
    "eu-west-1": "EU (Ireland)",
    "eu-west-2": "EU (London)",
    "eu-west-3": "EU (Paris)",
    "eu-central-1": "EU (Frankfurt)",
    "ap-southeast-1": "Asia Pacific (Singapore)",
    "ap-southeast-2": "Asia Pacific (Sydney)",
    "ap-northeast-1": "Asia Pacific (Tokyo)",
    "ap-south-1": "Asia Pacific (Mumbai)",
    "ca-central-1": "Canada (Central)",
    "sa-east-1": "South America (Sao Paulo)",
}

AUTH_ERROR_CODES = {
    "AccessDenied", "AccessDeniedException", "UnrecognizedClientException",
    "InvalidClientTokenId", "ExpiredToken", "ExpiredTokenException",
    "InvalidSignatureException", "SignatureDoesNotMatch",
}
TRANSIENT_ERROR_CODES = {
    "Throttling", "ThrottlingException", "TooManyRequestsException",
    "RequestLimitExceeded", "InternalErrorException", "InternalFailure",
    "ServiceUnavailable", "ServiceUnavailableException",
}
NOT_FOUND_ERROR_CODES = {"NotFoundException", "ExpiredNextTokenException"}


def location_for_region(region: str) -> str:
    return REGION_LOCATIONS.get(region, REGION_LOCATIONS["eu-west-1"])


def translate_error(error: Exception, operation: str) -> CatalogError:
    """Map botocore failures onto the catalog exception hierarchy"""
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        message = f"{operation} failed ({code}): {error}"
        if code in AUTH_ERROR_CODES:
            return CatalogAuthorizationError(message)
        if code in TRANSIENT_ERROR_CODES:
            return TransientCatalogError(message)
        if code in NOT_FOUND_ERROR_CODES:
            return CatalogNotFoundError(message)
        return CatalogError(message)
    if isinstance(error, NoCredentialsError):
        return CatalogAuthorizationError(f"{operation} failed: no AWS credentials found")
    if isinstance(error, EndpointConnectionError):
        return TransientCatalogError(f"{operation} failed: {error}")
    return CatalogError(f"{operation} failed: {error}")


class AWSPricingCatalog(BasePricingCatalog):
    """EC2 prices from the AWS Price List (GetProducts) API.

    The Price List API only publishes on-demand prices, so spot requests
    are answered with the on-demand price tagged as on-demand.
    """

    name = "aws-pricing"

    def __init__(self, region: str = "us-east-1", pricing_region: str = "us-east-1",
                 profile: Optional[str] = None,
                 access_key_id: Optional[str] = None,
                 secret_access_key: Optional[str] = None,
                 session_token: Optional[str] = None,
                 client: Any = None):
        self.region = region
        self.pricing_region = pricing_region
        self.profile = profile
        self._credentials = {
            "aws_access_key_id": access_key_id,
            "aws_secret_access_key": secret_access_key,
            "aws_session_token": session_token,
        }
        self._client = client
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config) -> "AWSPricingCatalog":
        def secret(value):
            return value.get_secret_value() if value else None

        return cls(
            region=config.region,
            pricing_region=config.pricing_region,
            profile=config.profile,
            access_key_id=secret(config.access_key_id),
            secret_access_key=secret(config.secret_access_key),
            session_token=secret(config.session_token),
        )

    @property
    def client(self):
        """Lazily created boto3 pricing client"""
        if self._client is None:
            try:
                if self.profile:
                    session = boto3.Session(profile_name=self.profile)
                else:
                    credentials = {k: v for k, v in self._credentials.items() if v}
                    session = boto3.Session(**credentials)
            except ProfileNotFound as e:
                raise AWSError(f"AWS profile not found: {self.profile}") from e

            self._client = session.client(
                "pricing",
                region_name=self.pricing_region,
                config=BotoConfig(retries={"max_attempts": 1}),
            )
        return self._client

    def _filters(self, instance_type: str) -> List[Dict[str, str]]:
        terms = {
            "ServiceCode": "AmazonEC2",
            "instanceType": instance_type,
            "tenancy": "Shared",
            "operatingSystem": "Linux",
            "preInstalledSw": "NA",
            "capacitystatus": "Used",
            "location": location_for_region(self.region),
        }
        return [{"Type": "TERM_MATCH", "Field": k, "Value": v} for k, v in terms.items()]

    def get_price(self, instance_type, capacity_class, ctx=None) -> CatalogPrice:
        if ctx is not None:
            ctx.check()
        operation = f"GetProducts({instance_type})"
        try:
            response = self.client.get_products(
                ServiceCode="AmazonEC2",
                Filters=self._filters(instance_type),
                FormatVersion="aws_v1",
                MaxResults=10,
            )
        except (ReadTimeoutError, ConnectTimeoutError) as e:
            raise OperationTimeoutError(f"{operation} timed out: {e}") from e
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, operation) from e

        price_list = response.get("PriceList", [])
        if not price_list:
            raise CatalogNotFoundError(f"No price list entry for {instance_type} in {self.region}")

        for item in price_list:
            try:
                product = json.loads(item) if isinstance(item, str) else item
            except ValueError as e:
                self.logger.warning(f"Skipping malformed price list entry for {instance_type}: {e}")
                continue
            if not isinstance(product, dict):
                self.logger.warning(f"Skipping price list entry for {instance_type}: not an object")
                continue
            price = self._on_demand_price(product)
            if price is not None and price > 0:
                self.logger.debug(f"Catalog price for {instance_type}: ${price:.4f}/hr")
                return CatalogPrice(price=price, capacity_class=CapacityClass.ON_DEMAND)

        raise CatalogNotFoundError(f"No USD on-demand price for {instance_type}")

    @staticmethod
    def _on_demand_price(product: Dict[str, Any]) -> Optional[float]:
        on_demand = product.get("terms", {}).get("OnDemand", {})
        for term in on_demand.values():
            for dimension in term.get("priceDimensions", {}).values():
                usd = dimension.get("pricePerUnit", {}).get("USD")
                if usd is None:
                    continue
                try:
                    price = float(usd)
                except ValueError:
                    continue
                if price > 0:
                    return price
        return None

    def list_instance_types(self, architecture, ctx=None) -> List[str]:
        arch = normalize_architecture(architecture)
        operation = "GetAttributeValues(instanceType)"
        types = set()
        try:
            paginator = self.client.get_paginator("get_attribute_values")
            for page in paginator.paginate(ServiceCode="AmazonEC2", AttributeName="instanceType"):
                if ctx is not None:
                    ctx.check()
                for entry in page.get("AttributeValues", []):
                    value = entry.get("Value")
                    spec = parse_instance_type(value) if value else None
                    if spec is None or spec.is_accelerator or spec.architecture != arch:
                        continue
                    types.add(value)
        except (ReadTimeoutError, ConnectTimeoutError) as e:
            raise OperationTimeoutError(f"{operation} timed out: {e}") from e
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, operation) from e

        self.logger.info(f"Catalog lists {len(types)} {arch.value} instance types")
        return sorted(types)
