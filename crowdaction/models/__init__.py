# Models package: import all models here so Alembic can discover them.

from crowdaction.models.user import User  # noqa: F401
from crowdaction.models.donation_event_log import DonationEventLog  # noqa: F401
