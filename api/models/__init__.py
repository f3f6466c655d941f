from models.batch import Batch
from models.plan import Plan
from models.subscription import Subscription
from models.payment import Payment

__all__ = ["Batch", "Plan", "Subscription", "Payment"]
