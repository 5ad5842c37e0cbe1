"""Data models for the Dynamic Solution API.

The records mirror the remote API resources. All validation happens on the
server, so every field is optional and unset (``None``) fields are left out
of the serialised payload.

Field names are snake_case; the API keys are PascalCase. Keys the API spells
with upper-case acronyms (``ObjectID``, ``IPAddress``, ``RFRegionID``) carry
an explicit alias.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_pascal
from pydantic.config import ConfigDict


class ApiModel(BaseModel):
    """Base class for records exchanged with the API."""

    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        extra="ignore",
    )

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready body keyed by API field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class User(ApiModel):
    """A configured Dynamic Solution user."""

    user_name: str | None = None
    email: str | None = None
    id: str | None = None


class Location(ApiModel):
    """A store location that communicators and displays belong to."""

    name: str | None = None
    time_zone: str | None = None
    geo_lat: float | None = None
    geo_long: float | None = None
    comments: str | None = None
    rf_region_id: int | None = Field(default=None, alias="RFRegionID")
    friendly_location_name: str | None = None


class Product(ApiModel):
    """A product (an "object" in API terms) that images are assigned to."""

    object_id: str | None = Field(default=None, alias="ObjectID")
    sequence: int | None = None
    object_name: str | None = None
    object_description: str | None = None
    searchable_values: list[str] | None = None
    client_id: int | None = Field(default=None, alias="ClientID")
    last_modified_by: str | None = None
    last_modified_on: datetime | None = None
    no_stores: int | None = None
    # The API misspells this key
    no_assigned_displays: int | None = Field(
        default=None, alias="NoAssignedDisplayds"
    )
    has_override: bool | None = None
    no_overrides: int | None = None
    api_location: str | None = None


class ProductSearchResult(ApiModel):
    """Paginated product search results."""

    objects: list[Product] = Field(default_factory=list)


class NetworkConfig(ApiModel):
    """Static network configuration of a communicator."""

    method: int | None = None
    ip_address: str | None = Field(default=None, alias="IPAddress")
    prefix_length: int | None = None
    default_gateway: str | None = None


class CommunicatorFirmware(ApiModel):
    """A communicator firmware version."""

    version: str | None = None


class Communicator(ApiModel):
    """A radio communicator installed at a location.

    Listing calls only fill in a subset of the fields; fetch a single
    communicator to get details such as the firmware version.
    """

    serial_number: str | None = None
    mode: str | None = None
    mac_address: str | None = Field(default=None, alias="MACAddress")
    nameservers: str | None = None
    domains: str | None = None
    ip_address: str | None = Field(default=None, alias="IPAddress")
    network_config: NetworkConfig | None = None
    hostname: str | None = None
    network_id: str | None = Field(default=None, alias="NetworkID")
    status: int | None = None
    comments: str | None = None
    description: str | None = None
    location_name: str | None = None
    client_id: int | None = Field(default=None, alias="ClientID")
    enabled: bool | None = None
    last_rssi_date: str | None = Field(default=None, alias="LastRSSIDate")
    backup_objects: str | None = None
    channel: int | None = None
    firmware_version: str | None = None
    keep_communicator_network_id: bool | None = None


class Image(ApiModel):
    """An image destined for one product page.

    Setting ``location_name`` sends the image as a local override for that
    location instead of a global image.
    """

    image_base64: str | None = None
    object_id: str | None = Field(default=None, alias="ObjectID")
    display_type_id: int | None = Field(default=None, alias="DisplayTypeID")
    page_id: int | None = Field(default=None, alias="PageID")
    location_name: str | None = None
    image_type: int | None = None
    user_defined_batch_id: str | None = Field(
        default=None, alias="UserDefinedBatchID"
    )
    force_update: str | None = None


class MultiProductImage(ApiModel):
    """An image sent to the same page of several products."""

    image_base64: str | None = None
    object_ids: list[str] | None = Field(default=None, alias="ObjectIDs")
    display_type_id: int | None = Field(default=None, alias="DisplayTypeID")
    page_id: int | None = Field(default=None, alias="PageID")
    location_name: str | None = None
    image_type: int | None = None
    user_defined_batch_id: str | None = Field(
        default=None, alias="UserDefinedBatchID"
    )
    force_update: bool | None = None


class ImageRef(ApiModel):
    """Reference to an image held in the server image store."""

    model_config = ConfigDict(frozen=True)

    image_reference: str | None = None


class DisplayDetails(ApiModel):
    """Display details as returned by the displays endpoint."""

    serial_number: str | None = None
    display_type_id: int | None = Field(default=None, alias="DisplayTypeID")
    display_type_name: str | None = None
    location_id: int | None = Field(default=None, alias="LocationID")
    location_name: str | None = None
    client_id: int | None = Field(default=None, alias="ClientID")
    pages: int | None = None


class ClearObjectPage(ApiModel):
    """Pages to clear on a group of products."""

    object_ids: list[str] = Field(default_factory=list)
    pages: list[int] = Field(default_factory=list)


class ClearProductPagesSpec(ApiModel):
    """Request body for clearing product pages."""

    clear_object_pages: list[ClearObjectPage] = Field(default_factory=list)


class PageResult(ApiModel):
    """Whether a clear was issued for a page."""

    page: int | None = None
    clear_issued: bool | None = None


class ClearProductPagesResponse(ApiModel):
    """Clear results for one group of products."""

    object_ids: list[str] = Field(default_factory=list)
    page_results: list[PageResult] = Field(default_factory=list)


class ClearProductPagesResponseList(ApiModel):
    """Response body of the clear product pages endpoint."""

    clear_object_pages_response: list[ClearProductPagesResponse] = Field(
        default_factory=list
    )


def to_json_value(value: Any) -> Any:
    """Convert models (and lists of models) into JSON-ready values."""
    if isinstance(value, ApiModel):
        return value.to_payload()
    if isinstance(value, list):
        return [to_json_value(item) for item in value]
    return value
