"""Read-only access to the indicator catalog."""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from statportal.core.access import AccessGate, Capability, Principal
from statportal.database.models import Indicator
from statportal.exceptions import IndicatorNotFoundError


class IndicatorCatalog:
    """Resolve indicators by id and list the ones a role can see."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, indicator_id: str) -> Optional[Indicator]:
        return self.db.get(Indicator, str(indicator_id))

    def require_active(self, indicator_id: str) -> Indicator:
        indicator = self.get(indicator_id)
        if indicator is None or not indicator.is_active:
            raise IndicatorNotFoundError(indicator_id)
        return indicator

    def visible_to(self, principal: Principal, gate: AccessGate,
                   category: Optional[str] = None) -> List[Indicator]:
        """Active indicators whose category the principal may read."""
        categories = gate.allowed_categories(principal.role, Capability.READ)
        if category:
            categories = categories & {category}
        if not categories:
            return []

        stmt = (
            select(Indicator)
            .where(Indicator.is_active.is_(True), Indicator.category.in_(sorted(categories)))
            .order_by(Indicator.no.asc(), Indicator.name.asc())
        )
        return list(self.db.execute(stmt).scalars().all())
