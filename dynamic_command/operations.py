"""Operations against the Dynamic Solution REST API.

Each function takes a ``DynamicCommandClient``, checks the response status
with ``ensure_success`` and decodes the body into models. Batch operations
send several embedded requests through the batch endpoint in one call.
The ``configured`` variants take the location, display serials and poll
interval from ``DynamicCommandSettings``.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING
from urllib.parse import quote, urlencode

from .api import FirmwareUpdateTimeoutError, ensure_success
from .const import (
    BATCH_PATH,
    CONTENT_TYPE_PNG,
    DEFAULT_FIRMWARE_POLL_INTERVAL,
    DISPLAY_TYPE_CHROMA29,
    IMAGE_STORE_SCHEME,
    IMAGE_TYPE_PNG,
    LEGACY_CLIENT_ID,
    LEGACY_DATA_SOURCE_ID,
)
from .models import (
    ClearProductPagesResponseList,
    ClearProductPagesSpec,
    Communicator,
    CommunicatorFirmware,
    DisplayDetails,
    Image,
    ImageRef,
    Location,
    MultiProductImage,
    Product,
    ProductSearchResult,
    User,
)
from .multipart import MultipartBody, encode_json, parse_multipart_responses

if TYPE_CHECKING:
    from collections.abc import Iterable

    import httpx

    from .api import DynamicCommandClient
    from .config import DynamicCommandSettings

_LOGGER = logging.getLogger(__name__)

FORM_DATA = "form-data"


def _quote(value: str) -> str:
    return quote(value, safe="")


def location_path(name: str, suffix: str = "") -> str:
    """Return the path of a location addressed by name."""
    return f"api/locations/name={_quote(name)}{suffix}"


def product_path(object_id: str, suffix: str = "") -> str:
    """Return the path of a product addressed by its object id."""
    return f"api/objects/{_quote(object_id)}{suffix}"


def batch_url(client: DynamicCommandClient) -> str:
    """Return the absolute URL of the batch endpoint."""
    return f"{client.api_url}{BATCH_PATH}"


def unique_sample_id() -> str:
    """Return a unique ``Sample_<uuid>`` identifier."""
    return f"Sample_{uuid.uuid4()}"


async def async_get_users(client: DynamicCommandClient) -> list[User]:
    """Fetch the configured Dynamic Solution users.

    Args:
        client: Authenticating API client.

    Returns:
        List of User objects.

    Raises:
        ApiRequestError: If the API answers with a non-success status.

    """
    _LOGGER.debug("Fetching users")
    response = ensure_success(await client.get("api/users"))
    users = [User.model_validate(item) for item in response.json()]
    _LOGGER.debug("Retrieved %d users", len(users))
    return users


def create_sample_location() -> Location:
    """Create a uniquely named sample location."""
    location_guid = str(uuid.uuid4())
    return Location(
        name=f"SampleLocation_{location_guid}",
        time_zone=datetime.now().astimezone().tzname(),
        geo_lat=51.4159438,
        geo_long=-0.7402738,
        comments="This is a sample comment",
        # See the API reference for the available RF regions
        rf_region_id=1,
        friendly_location_name=f"Sample Location {location_guid}",
    )


async def async_add_location(client: DynamicCommandClient, location: Location) -> None:
    """Create a new location.

    Args:
        client: Authenticating API client.
        location: Location to create.

    Raises:
        ApiRequestError: If the API answers with a non-success status.

    """
    _LOGGER.debug("Adding location %s", location.name)
    ensure_success(await client.post("api/locations", location))
    _LOGGER.info("Added location %s", location.name)


async def async_get_locations(
    client: DynamicCommandClient, name: str
) -> list[Location]:
    """Search locations by name.

    Args:
        client: Authenticating API client.
        name: Location name to search for.

    Returns:
        Matching locations.

    """
    query = urlencode({"clientId": LEGACY_CLIENT_ID, "locationName": name})
    response = ensure_success(await client.get(f"api/locations?{query}"))
    locations = [Location.model_validate(item) for item in response.json()]
    _LOGGER.debug("Found %d locations named %s", len(locations), name)
    return locations


async def async_update_location(
    client: DynamicCommandClient, name: str, location: Location
) -> None:
    """Update the fields set on ``location`` for the location called ``name``."""
    ensure_success(await client.put(location_path(name), location))
    _LOGGER.info("Updated location %s", name)


async def async_get_communicators(client: DynamicCommandClient) -> list[Communicator]:
    """Fetch all communicators.

    Not every field is filled in by this call.
    """
    response = ensure_success(await client.get("api/communicator"))
    communicators = [Communicator.model_validate(item) for item in response.json()]
    _LOGGER.debug("Retrieved %d communicators", len(communicators))
    return communicators


async def async_get_communicator(
    client: DynamicCommandClient, serial_number: str
) -> Communicator:
    """Fetch one communicator with its full details."""
    response = ensure_success(
        await client.get(f"api/communicator/{_quote(serial_number)}")
    )
    return Communicator.model_validate(response.json())


async def async_get_location_communicators(
    client: DynamicCommandClient, name: str
) -> list[Communicator]:
    """Fetch the communicators installed at a location."""
    response = ensure_success(
        await client.get(location_path(name, "/communicators"))
    )
    return [Communicator.model_validate(item) for item in response.json()]


async def async_get_default_communicator_firmware(
    client: DynamicCommandClient,
) -> CommunicatorFirmware:
    """Fetch the default communicator firmware of the server."""
    response = ensure_success(await client.get("api/locations/communicatorfirmware"))
    firmware = CommunicatorFirmware.model_validate(response.json())
    _LOGGER.debug("Default communicator firmware is %s", firmware.version)
    return firmware


async def async_set_location_default_firmware(
    client: DynamicCommandClient, name: str
) -> CommunicatorFirmware:
    """Set a location's firmware to the server default.

    Returns:
        The firmware the location was set to.

    """
    firmware = await async_get_default_communicator_firmware(client)
    ensure_success(await client.post(location_path(name), firmware))
    _LOGGER.info("Set location %s firmware to %s", name, firmware.version)
    return firmware


async def async_is_location_firmware_out_of_date(
    client: DynamicCommandClient, name: str
) -> bool:
    """Check whether any communicator at a location runs outdated firmware.

    Firmware versions are only reported per communicator, so each
    communicator at the location is fetched individually.

    Args:
        client: Authenticating API client.
        name: Location name.

    Returns:
        True if at least one communicator differs from the default firmware.

    """
    latest = await async_get_default_communicator_firmware(client)
    for communicator in await async_get_location_communicators(client, name):
        detailed = await async_get_communicator(client, communicator.serial_number)
        if detailed.firmware_version != latest.version:
            _LOGGER.info("Location %s firmware not up to date", name)
            return True
    _LOGGER.info("Location %s is on the latest firmware", name)
    return False


async def async_update_location_firmware(
    client: DynamicCommandClient,
    name: str,
    *,
    poll_interval: float = DEFAULT_FIRMWARE_POLL_INTERVAL,
    max_attempts: int | None = None,
) -> None:
    """Upgrade a location's communicators and wait until they report it.

    Upgrades can take up to 30 minutes. The location is checked every
    ``poll_interval`` seconds until every communicator is current.

    Args:
        client: Authenticating API client.
        name: Location name.
        poll_interval: Seconds to wait between checks.
        max_attempts: Maximum number of checks, unbounded when None.

    Raises:
        FirmwareUpdateTimeoutError: If ``max_attempts`` checks all found
            outdated communicators.

    """
    firmware = await async_get_default_communicator_firmware(client)
    ensure_success(
        await client.post(location_path(name, "/communicatorfirmware"), firmware)
    )
    _LOGGER.info("Requested firmware %s for location %s", firmware.version, name)

    attempts = 0
    while await async_is_location_firmware_out_of_date(client, name):
        attempts += 1
        if max_attempts is not None and attempts >= max_attempts:
            timeout_error = (
                f"Location {name} still not on firmware {firmware.version} "
                f"after {attempts} checks"
            )
            raise FirmwareUpdateTimeoutError(timeout_error)
        _LOGGER.info(
            "Upgrading communicators, checking again in %s seconds", poll_interval
        )
        await asyncio.sleep(poll_interval)


def create_sample_product() -> Product:
    """Create a product with a unique object id and searchable value."""
    return Product(
        object_id=unique_sample_id(),
        searchable_values=[unique_sample_id()],
        object_name="Sample Product",
        object_description="Some text about the sample product",
    )


async def async_add_product(
    client: DynamicCommandClient, product: Product | None = None
) -> Product:
    """Create a product.

    Args:
        client: Authenticating API client.
        product: Product to create; a unique sample product when None.

    Returns:
        The product that was sent.

    """
    product = product or create_sample_product()
    ensure_success(await client.post("api/objects", product))
    _LOGGER.info("Added product %s", product.object_id)
    return product


async def async_get_product(client: DynamicCommandClient, object_id: str) -> Product:
    """Fetch a product by object id."""
    response = ensure_success(await client.get(product_path(object_id)))
    return Product.model_validate(response.json())


async def async_update_product(
    client: DynamicCommandClient, object_id: str, product: Product
) -> None:
    """Update the fields set on ``product`` for an existing product."""
    ensure_success(await client.put(product_path(object_id), product))
    _LOGGER.info("Updated product %s", object_id)


async def async_delete_product(client: DynamicCommandClient, object_id: str) -> None:
    """Delete a product."""
    ensure_success(await client.delete(product_path(object_id)))
    _LOGGER.info("Deleted product %s", object_id)


async def async_search_products(
    client: DynamicCommandClient,
    name: str,
    description: str = "",
    *,
    from_item: int = 1,
    to_item: int = 10,
) -> list[Product]:
    """Search products by name and description.

    Results are paginated, so the item range is always required.

    Args:
        client: Authenticating API client.
        name: Product name to match.
        description: Product description to match.
        from_item: First result (1-based).
        to_item: Last result.

    Returns:
        Matching products.

    """
    query = urlencode(
        {
            "clientId": LEGACY_CLIENT_ID,
            "dataSourceId": LEGACY_DATA_SOURCE_ID,
            "fromItem": from_item,
            "toItem": to_item,
            "objName": name,
            "objDesc": description,
        }
    )
    response = ensure_success(await client.get(f"api/objects/detail?{query}"))
    result = ProductSearchResult.model_validate(response.json())
    for product in result.objects:
        _LOGGER.debug("Found: %s with ID: %s", product.object_name, product.object_id)
    return result.objects


def encode_image(image_bytes: bytes) -> str:
    """Return image bytes as base64 text."""
    return base64.b64encode(image_bytes).decode("ascii")


def create_image(
    image_bytes: bytes | None = None,
    object_id: str | None = None,
    *,
    page: int | None = None,
    location_name: str | None = None,
    batch_id: str | None = None,
) -> Image:
    """Create a PNG image record for the sample display type.

    Args:
        image_bytes: PNG data; omitted when the image travels in its own
            multipart part.
        object_id: Target product.
        page: Target page.
        location_name: Send as a local override for this location.
        batch_id: User defined batch id shared by related images.

    Returns:
        Image ready to send.

    """
    return Image(
        image_base64=encode_image(image_bytes) if image_bytes is not None else None,
        object_id=object_id,
        display_type_id=DISPLAY_TYPE_CHROMA29,
        page_id=page,
        location_name=location_name,
        image_type=IMAGE_TYPE_PNG,
        user_defined_batch_id=batch_id,
    )


async def async_send_image(
    client: DynamicCommandClient,
    object_id: str,
    image_bytes: bytes,
    *,
    page: int = 1,
    location_name: str | None = None,
    batch_id: str | None = None,
) -> None:
    """Send an image to one page of a product.

    The image is global unless ``location_name`` is given, in which case it
    becomes a local override for that location.
    """
    image = create_image(
        image_bytes,
        object_id,
        page=page,
        location_name=location_name,
        batch_id=batch_id,
    )
    ensure_success(await client.post(product_path(object_id, "/images"), image))
    _LOGGER.info("Sent image to product %s page %d", object_id, page)


async def async_send_multi_product_image(
    client: DynamicCommandClient,
    object_ids: list[str],
    image_bytes: bytes,
    *,
    page: int = 1,
    location_name: str | None = None,
    batch_id: str | None = None,
) -> None:
    """Send one image to the same page of several products."""
    image = MultiProductImage(
        image_base64=encode_image(image_bytes),
        object_ids=object_ids,
        display_type_id=DISPLAY_TYPE_CHROMA29,
        page_id=page,
        location_name=location_name,
        image_type=IMAGE_TYPE_PNG,
        user_defined_batch_id=batch_id,
    )
    ensure_success(await client.post("api/objects/imagetomultipleobjects", image))
    _LOGGER.info("Sent image to %d products page %d", len(object_ids), page)


async def async_clear_product_pages(
    client: DynamicCommandClient,
    spec: ClearProductPagesSpec,
    location_name: str | None = None,
) -> ClearProductPagesResponseList:
    """Clear product pages.

    Clears global images, or a location's local overrides when
    ``location_name`` is given.

    Args:
        client: Authenticating API client.
        spec: Products and pages to clear.
        location_name: Location whose local overrides are cleared.

    Returns:
        Per product group, whether a clear was issued for each page.

    """
    path = "api/objects/pages/clear"
    if location_name is not None:
        path = f"{path}?{urlencode({'locationname': location_name})}"

    response = ensure_success(await client.post(path, spec))
    result = ClearProductPagesResponseList.model_validate(response.json())
    for clear_response in result.clear_object_pages_response:
        for page_result in clear_response.page_results:
            if page_result.clear_issued:
                _LOGGER.info(
                    "Page %s on product(s) %s cleared",
                    page_result.page,
                    ", ".join(clear_response.object_ids),
                )
    return result


async def async_send_batch(
    client: DynamicCommandClient, body: MultipartBody
) -> list[httpx.Response]:
    """Send embedded requests through the batch endpoint.

    The batch endpoint never answers 401 itself, so the client
    authenticates before sending.

    Args:
        client: Authenticating API client.
        body: multipart/mixed body of embedded requests.

    Returns:
        One response per embedded request, in request order.

    Raises:
        ApiRequestError: If the batch call itself fails.

    """
    request = body.build_request(client, batch_url(client))
    _LOGGER.debug("Sending batch of %d requests", len(body))
    response = ensure_success(await client.send(request, pre_authenticate=True))
    return parse_multipart_responses(response)


async def _async_send_checked_batch(
    client: DynamicCommandClient, body: MultipartBody
) -> list[httpx.Response]:
    responses = await async_send_batch(client, body)
    for response in responses:
        ensure_success(response)
    return responses


async def async_add_displays(
    client: DynamicCommandClient,
    location_name: str,
    serial_numbers: Iterable[str],
) -> list[httpx.Response]:
    """Add displays to a location in one batch request.

    Raises:
        ApiRequestError: If the batch or any embedded request fails.

    """
    body = MultipartBody()
    for serial_number in serial_numbers:
        body.add_request(
            "PUT",
            f"{client.api_url}"
            f"{location_path(location_name, f'/displays/{_quote(serial_number)}')}",
        )
    responses = await _async_send_checked_batch(client, body)
    _LOGGER.info("Added %d displays to location %s", len(responses), location_name)
    return responses


async def async_delete_displays(
    client: DynamicCommandClient, serial_numbers: Iterable[str]
) -> list[httpx.Response]:
    """Delete displays in one batch request.

    Raises:
        ApiRequestError: If the batch or any embedded request fails.

    """
    body = MultipartBody()
    for serial_number in serial_numbers:
        body.add_request(
            "DELETE", f"{client.api_url}api/displays/{_quote(serial_number)}"
        )
    responses = await _async_send_checked_batch(client, body)
    _LOGGER.info("Deleted %d displays", len(responses))
    return responses


async def async_get_display(
    client: DynamicCommandClient, serial_number: str
) -> DisplayDetails:
    """Fetch a display by serial number."""
    response = ensure_success(
        await client.get(f"api/displays/{_quote(serial_number)}")
    )
    return DisplayDetails.model_validate(response.json())


async def async_send_images_batch(
    client: DynamicCommandClient,
    object_ids: Iterable[str],
    image_bytes: bytes,
    location_name: str,
    *,
    page: int = 1,
    batch_id: str | None = None,
) -> list[httpx.Response]:
    """Send the same image to many products in one batch request.

    Every image carries the same user defined batch id, which is also used
    as the multipart boundary.

    Raises:
        ApiRequestError: If the batch or any embedded request fails.

    """
    batch_id = batch_id or f"batch_{uuid.uuid4()}"
    body = MultipartBody(boundary=batch_id)
    for object_id in object_ids:
        image = create_image(
            image_bytes,
            object_id,
            page=page,
            location_name=location_name,
            batch_id=batch_id,
        )
        body.add_request(
            "POST", f"{client.api_url}{product_path(object_id, '/images')}", image
        )
    responses = await _async_send_checked_batch(client, body)
    _LOGGER.info("Sent %d images in batch %s", len(responses), batch_id)
    return responses


def _extract_image_ref(response: httpx.Response) -> ImageRef:
    image_ref = ImageRef.model_validate(response.json())
    if not (image_ref.image_reference or "").startswith(IMAGE_STORE_SCHEME):
        _LOGGER.warning("Unexpected image reference: %s", image_ref.image_reference)
    return image_ref


async def async_store_image_base64(
    client: DynamicCommandClient, image_bytes: bytes
) -> ImageRef:
    """Store an image in the image store as base64 JSON.

    Returns:
        Reference to the stored image.

    """
    image = create_image(image_bytes)
    response = ensure_success(await client.post("api/images/", image))
    image_ref = _extract_image_ref(response)
    _LOGGER.info("Stored image as %s", image_ref.image_reference)
    return image_ref


async def async_store_image_multipart(
    client: DynamicCommandClient,
    image_bytes: bytes,
    subtype: str = "mixed",
) -> ImageRef:
    """Store an image in the image store as a multipart upload.

    The image description travels as a JSON part and the PNG data as an
    ``image/png`` part. The part content type overrides the image type of
    the description.

    Args:
        client: Authenticating API client.
        image_bytes: PNG data.
        subtype: ``mixed``, ``related`` or ``form-data``.

    Returns:
        Reference to the stored image.

    """
    image = create_image()
    if subtype == FORM_DATA:
        request = client.build_request(
            "POST",
            "api/images",
            files={
                "image": (None, encode_json(image), "application/json"),
                "file": ("image.png", image_bytes, CONTENT_TYPE_PNG),
            },
        )
    else:
        body = MultipartBody(subtype)
        body.add_json(image)
        body.add_bytes(image_bytes, CONTENT_TYPE_PNG)
        request = body.build_request(client, "api/images")

    response = ensure_success(await client.send(request))
    image_ref = _extract_image_ref(response)
    _LOGGER.info("Stored multipart image as %s", image_ref.image_reference)
    return image_ref


async def async_update_configured_location_firmware(
    client: DynamicCommandClient,
    settings: DynamicCommandSettings,
    *,
    max_attempts: int | None = None,
) -> None:
    """Upgrade the configured location, polling at the configured interval."""
    await async_update_location_firmware(
        client,
        settings.location_name,
        poll_interval=settings.firmware_poll_interval,
        max_attempts=max_attempts,
    )


async def async_add_configured_displays(
    client: DynamicCommandClient, settings: DynamicCommandSettings
) -> list[httpx.Response]:
    """Add the configured display serials to the configured location."""
    return await async_add_displays(
        client, settings.location_name, settings.display_serials
    )


async def async_delete_configured_displays(
    client: DynamicCommandClient, settings: DynamicCommandSettings
) -> list[httpx.Response]:
    """Delete the configured display serials."""
    return await async_delete_displays(client, settings.display_serials)
