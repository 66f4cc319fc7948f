"""Domain modules package."""

from academy.modules.audit import models as audit_models  # noqa: F401
from academy.modules.catalog import models as catalog_models  # noqa: F401
from academy.modules.identity import models as identity_models  # noqa: F401
from academy.modules.notifications import models as notifications_models  # noqa: F401
from academy.modules.payments import models as payments_models  # noqa: F401
from academy.modules.promotions import models as promotions_models  # noqa: F401
from academy.modules.reservations import models as reservations_models  # noqa: F401
from academy.modules.waitlist import models as waitlist_models  # noqa: F401
