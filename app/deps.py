from functools import lru_cache
from uuid import UUID

import httpx
from fastapi import Depends
from loguru import logger

from app import settings
from app.crud import booking_crud
from app.errors import UpstreamServiceError
from app.manager import BookingManager, BookingStore
from app.schemas import PropertySummary, UserSummary

# ---------------------------------------------------------------------------
# PropertiesClient: the property directory, backed by properties-ms
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _get_properties_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.properties_ms_url,
        timeout=httpx.Timeout(settings.http_timeout),
        follow_redirects=True,
    )


class PropertiesClient:
    """Thin async wrapper around the properties-ms internal API."""

    @property
    def _client(self) -> httpx.AsyncClient:
        return _get_properties_http_client()

    async def get_property(self, property_id: UUID) -> PropertySummary | None:
        """Returns the property or None if 404. Raises UpstreamServiceError otherwise."""
        try:
            resp = await self._client.get(f"/properties/{property_id}")
        except httpx.RequestError as exc:
            raise UpstreamServiceError(
                "Property service unavailable", detail=repr(exc)
            ) from exc
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise UpstreamServiceError(
                "Property service unavailable",
                detail=f"properties-ms returned {resp.status_code}",
            )
        return PropertySummary.model_validate(resp.json())

    async def get_by_ids(self, property_ids: set[UUID]) -> list[PropertySummary]:
        """Bulk-fetch property summaries for enrichment. Fails silently."""
        if not property_ids:
            return []
        try:
            params = [("ids", str(pid)) for pid in property_ids]
            resp = await self._client.get("/properties/bulk", params=params)
            if resp.status_code >= 400 or not resp.content:
                return []
            return [PropertySummary.model_validate(p) for p in resp.json()]
        except (httpx.RequestError, ValueError):
            logger.warning("Property enrichment failed", exc_info=True)
            return []


_properties_client = PropertiesClient()


def get_properties_client() -> PropertiesClient:
    return _properties_client


# ---------------------------------------------------------------------------
# UsersClient: user lookup, backed by users-ms
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _get_users_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.users_ms_url,
        timeout=httpx.Timeout(settings.http_timeout),
        follow_redirects=True,
    )


class UsersClient:
    """Thin async wrapper around the users-ms internal API."""

    @property
    def _client(self) -> httpx.AsyncClient:
        return _get_users_http_client()

    async def get_user(self, user_id: UUID) -> UserSummary | None:
        try:
            resp = await self._client.get(f"/users/{user_id}")
        except httpx.RequestError as exc:
            raise UpstreamServiceError(
                "User service unavailable", detail=repr(exc)
            ) from exc
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise UpstreamServiceError(
                "User service unavailable",
                detail=f"users-ms returned {resp.status_code}",
            )
        return UserSummary.model_validate(resp.json())

    async def user_exists(self, user_id: UUID) -> bool:
        return await self.get_user(user_id) is not None

    async def get_by_ids(self, user_ids: set[UUID]) -> list[UserSummary]:
        """Bulk-fetch users by ID for enrichment. Fails silently."""
        if not user_ids:
            return []
        try:
            params = [("ids", str(uid)) for uid in user_ids]
            resp = await self._client.get("/users/bulk", params=params)
            if resp.status_code >= 400 or not resp.content:
                return []
            return [UserSummary.model_validate(u) for u in resp.json()]
        except (httpx.RequestError, ValueError):
            logger.warning("User enrichment failed", exc_info=True)
            return []


_users_client = UsersClient()


def get_users_client() -> UsersClient:
    return _users_client


async def close_http_clients() -> None:
    for factory in (_get_properties_http_client, _get_users_http_client):
        if factory.cache_info().currsize:
            await factory().aclose()
            factory.cache_clear()


# ---------------------------------------------------------------------------
# Booking store and lifecycle manager
# ---------------------------------------------------------------------------


def get_booking_store() -> BookingStore:
    return booking_crud


def get_booking_manager(
    store: BookingStore = Depends(get_booking_store),
    properties: PropertiesClient = Depends(get_properties_client),
    users: UsersClient = Depends(get_users_client),
) -> BookingManager:
    return BookingManager(store=store, properties=properties, users=users)
