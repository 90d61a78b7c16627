"""Workshop repository - Database operations for workshop_details"""

from sqlalchemy.orm import Session

from ...models import WorkshopDetail


class WorkshopRepository:
    """Repository for workshop database operations"""

    @staticmethod
    def list_workshops(db: Session) -> list[dict]:
        rows = db.query(WorkshopDetail).order_by(WorkshopDetail.created_at.asc()).all()
        return [{**(row.document or {}), "_id": row.id, "theme": row.theme} for row in rows]

    @staticmethod
    def create_workshop(db: Session, document: dict) -> WorkshopDetail:
        row = WorkshopDetail(theme=document.get("theme"), document=document)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def get_themes(db: Session, workshop_ids: list[str]) -> dict[str, str]:
        """Map id -> theme for the ids that exist"""
        if not workshop_ids:
            return {}
        rows = (
            db.query(WorkshopDetail.id, WorkshopDetail.theme)
            .filter(WorkshopDetail.id.in_(workshop_ids))
            .all()
        )
        return {row.id: row.theme or "Unknown Theme" for row in rows}
