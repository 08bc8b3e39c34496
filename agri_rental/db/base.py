# Import every model so Base.metadata is complete before create_all and
# string relationships resolve.
from agri_rental.models.base import Base  # noqa: F401
from agri_rental.models.user import User  # noqa: F401
from agri_rental.models.intermediary import Intermediary  # noqa: F401
from agri_rental.models.operator import Operator  # noqa: F401
from agri_rental.models.device import Device  # noqa: F401
from agri_rental.models.threshold_config import ThresholdConfig  # noqa: F401
from agri_rental.models.pricing_rule import PricingRule  # noqa: F401
from agri_rental.models.order import Order  # noqa: F401
from agri_rental.models.lease import Lease  # noqa: F401
from agri_rental.models.audit import AuditLog  # noqa: F401
from agri_rental.models.notification import Notification  # noqa: F401
