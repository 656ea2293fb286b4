"""Central model registry: import all models so Alembic autodiscover works."""

from invoicing.database import Base  # noqa: F401

from invoicing.models.user import User  # noqa: F401
from invoicing.models.invoice import Invoice  # noqa: F401
