from mxindex.models.discovery import Delegation, PartialResult
from mxindex.models.server import ServerRecord
from mxindex.utils.errors import UnreachableDomainError


def merge(domain: str, delegation: Delegation, partial: PartialResult) -> ServerRecord:
    """Build the canonical record from probe outcomes.

    A failed probe leaves its fields as None; nothing is defaulted. Raises
    UnreachableDomainError when no probe contributed a single field.
    """
    client = partial.client_well_known
    capabilities = partial.capabilities

    record = ServerRecord(
        domain=domain,
        delegated_server=delegation.delegated_server,
        name=client.name if client else None,
        description=client.description if client else None,
        logo_url=client.logo_url if client else None,
        theme=client.theme if client else None,
        registration_open=capabilities.registration_open if capabilities else None,
        room_versions=capabilities.room_versions if capabilities else None,
        public_rooms_count=partial.public_rooms.room_count if partial.public_rooms else None,
        version=partial.client_versions.summary if partial.client_versions else None,
        federation_version=(
            partial.federation_version.label if partial.federation_version else None
        ),
    )

    if not record.has_fetched_data():
        raise UnreachableDomainError(f"No metadata could be fetched for {domain}", domain=domain)
    return record
