"""Repository for Area and Project database operations."""

import logging
from typing import List, Optional
from sqlalchemy.orm import Session

from slotplan.database.models import AreaDB, ProjectDB

logger = logging.getLogger(__name__)


class ProjectRepository:
    """Areas and projects, as far as slot capability filters need them."""

    def __init__(self, db: Session):
        self.db = db

    def create_area(self, user_id: str, name: str, *, area_id: Optional[str] = None) -> AreaDB:
        row = AreaDB(id=area_id, user_id=user_id, name=name)
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"Created area {row.id}: {name}")
            return row
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create area: {type(e).__name__}: {str(e)}")
            raise

    def create_project(
        self,
        user_id: str,
        name: str,
        *,
        area_id: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> ProjectDB:
        row = ProjectDB(id=project_id, user_id=user_id, name=name, area_id=area_id)
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"Created project {row.id}: {name}")
            return row
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create project: {type(e).__name__}: {str(e)}")
            raise

    def get_area(self, user_id: str, area_id: str) -> Optional[AreaDB]:
        return (
            self.db.query(AreaDB)
            .filter(AreaDB.user_id == user_id, AreaDB.id == area_id)
            .first()
        )

    def get_projects(self, user_id: str, project_ids: List[str]) -> List[ProjectDB]:
        if not project_ids:
            return []
        return (
            self.db.query(ProjectDB)
            .filter(ProjectDB.user_id == user_id, ProjectDB.id.in_(project_ids))
            .all()
        )
