"""Shapes of the public Matrix documents probed during discovery.

Each probe response is validated against one of these models; a body that does
not validate is treated exactly like a failed request.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProbeKind(StrEnum):
    CLIENT_WELL_KNOWN = "client_well_known"
    CAPABILITIES = "capabilities"
    PUBLIC_ROOMS = "public_rooms"
    CLIENT_VERSIONS = "client_versions"
    FEDERATION_VERSION = "federation_version"


class Delegation(BaseModel):
    target_host: str
    delegated_server: str | None = None


class WellKnownServer(BaseModel):
    m_server: str = Field(alias="m.server", min_length=1)


class WellKnownClient(BaseModel):
    # name/description/logo_url/theme are index-specific extensions to the
    # standard m.homeserver document
    name: str | None = None
    description: str | None = None
    logo_url: str | None = None
    theme: str | None = None


class RoomVersionsCapability(BaseModel):
    default: str | None = None
    available: dict[str, str] = {}


class EnabledCapability(BaseModel):
    enabled: bool


class CapabilitySet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_versions: RoomVersionsCapability | None = Field(default=None, alias="m.room_versions")
    registration: EnabledCapability | None = Field(default=None, alias="m.registration")
    change_password: EnabledCapability | None = Field(default=None, alias="m.change_password")


class CapabilitiesResponse(BaseModel):
    capabilities: CapabilitySet

    @property
    def room_versions(self) -> list[str] | None:
        caps = self.capabilities.room_versions
        if caps is None or not caps.available:
            return None
        return list(caps.available)

    @property
    def registration_open(self) -> bool | None:
        caps = self.capabilities
        if caps.registration is not None:
            return caps.registration.enabled
        if caps.change_password is not None:
            return caps.change_password.enabled
        return None


class PublicRoomsResponse(BaseModel):
    chunk: list[dict[str, Any]]
    total_room_count_estimate: int | None = Field(default=None, ge=0)

    @property
    def room_count(self) -> int:
        if self.total_room_count_estimate is not None:
            return self.total_room_count_estimate
        return len(self.chunk)


class ClientVersionsResponse(BaseModel):
    versions: list[str] = Field(min_length=1)

    @property
    def summary(self) -> str:
        return ", ".join(self.versions)


class FederationServer(BaseModel):
    name: str = Field(min_length=1)
    version: str | None = None


class FederationVersionResponse(BaseModel):
    server: FederationServer

    @property
    def label(self) -> str:
        if self.server.version:
            return f"{self.server.name}/{self.server.version}"
        return self.server.name


class PartialResult(BaseModel):
    """One outcome per probe kind: the validated document, or None if it failed."""

    client_well_known: WellKnownClient | None = None
    capabilities: CapabilitiesResponse | None = None
    public_rooms: PublicRoomsResponse | None = None
    client_versions: ClientVersionsResponse | None = None
    federation_version: FederationVersionResponse | None = None

    def succeeded(self) -> list[ProbeKind]:
        return [kind for kind in ProbeKind if getattr(self, kind.value) is not None]
