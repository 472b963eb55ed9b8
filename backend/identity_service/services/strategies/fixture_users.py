"""Named development principals for fixture authentication.

These never touch the database. Their ids sit in a reserved range so that
session records for them cannot be confused with provider-linked users.
"""

from identity_service.services.principal import Principal

FIXTURE_PROVIDER = "development"

FIXTURE_PRINCIPALS: tuple[Principal, ...] = (
    Principal(
        id=9001,
        email="admin@identity.dev",
        display_name="Dev Admin",
        role="admin",
        provider=FIXTURE_PROVIDER,
        external_id="dev|admin001",
    ),
    Principal(
        id=9002,
        email="manager@identity.dev",
        display_name="Dev Manager",
        role="manager",
        provider=FIXTURE_PROVIDER,
        external_id="dev|manager001",
    ),
    Principal(
        id=9003,
        email="dispatcher@identity.dev",
        display_name="Dev Dispatcher",
        role="dispatcher",
        provider=FIXTURE_PROVIDER,
        external_id="dev|dispatcher001",
    ),
    Principal(
        id=9004,
        email="technician@identity.dev",
        display_name="Dev Technician",
        role="technician",
        provider=FIXTURE_PROVIDER,
        external_id="dev|technician001",
    ),
    Principal(
        id=9005,
        email="client@identity.dev",
        display_name="Dev Client",
        role="client",
        provider=FIXTURE_PROVIDER,
        external_id="dev|client001",
    ),
)
