"""Design repository - Database operations for design commissions"""

from typing import Optional

from sqlalchemy import exists, update
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import func

from ...models import Design, Post

designs_table = Design.__table__
posts_table = Post.__table__

# Commissions only move while their post is still accepted
post_is_accepted = exists().where(
    posts_table.c.id == designs_table.c.post_id, posts_table.c.status == "accepted"
)


class DesignRepository:
    """Repository for design database operations"""

    @staticmethod
    def get_design(db: Session, design_id: str) -> Optional[Design]:
        return db.query(Design).filter(Design.id == design_id).first()

    @staticmethod
    def add_design(db: Session, **design_data) -> Design:
        """Stage a design in the caller's transaction"""
        design = Design(stage="initial_sketch", status="pending", **design_data)
        db.add(design)
        return design

    @staticmethod
    def list_designs(db: Session, status: str, designer_id: str = None, shop_id: str = None) -> list[Design]:
        query = db.query(Design).filter(Design.status == status)
        if designer_id:
            query = query.filter(Design.designer_id == designer_id)
        if shop_id:
            query = query.filter(Design.shop_id == shop_id)
        return (
            query.options(selectinload(Design.designer), selectinload(Design.shop), selectinload(Design.post))
            .order_by(Design.updated_at.desc())
            .all()
        )

    @staticmethod
    def advance_stage(db: Session, design_id: str, current_stage: str, new_stage: str, images: list) -> int:
        """Move a pending design from ``current_stage`` to ``new_stage``. Returns affected rows."""
        result = db.execute(
            update(designs_table)
            .where(
                designs_table.c.id == design_id,
                designs_table.c.status == "pending",
                designs_table.c.stage == current_stage,
                post_is_accepted,
            )
            .values(stage=new_stage, images=images, updated_at=func.now())
        )
        return result.rowcount

    @staticmethod
    def mark_purchased(db: Session, design_id: str) -> int:
        result = db.execute(
            update(designs_table)
            .where(
                designs_table.c.id == design_id,
                designs_table.c.status == "pending",
                designs_table.c.stage == "final_design",
                post_is_accepted,
            )
            .values(status="purchased", updated_at=func.now())
        )
        return result.rowcount
