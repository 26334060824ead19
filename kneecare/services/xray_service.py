"""
X-ray image service.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kneecare.models.user import User
from kneecare.models.xray import XRayImage
from kneecare.services.record_service import OwnedRecordService
from kneecare.services.storage_service import StorageService
from kneecare.utils.file_utils import validate_image_upload

logger = logging.getLogger(__name__)


class XRayService(OwnedRecordService):
    model = XRayImage
    entity = "xray"
    date_field = "uploaded_at"
    permission = "view_predictions"
    not_found_message = "X-ray image not found"

    def __init__(self, db: Session, storage: Optional[StorageService] = None):
        super().__init__(db)
        self.storage = storage

    def upload(
        self,
        actor: User,
        content: bytes,
        filename: str,
        content_type: str,
        max_size: int,
        owner_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> XRayImage:
        """Validate, store and register an uploaded X-ray."""
        owner_id = owner_id or actor.id
        self.authorize_owner(actor, owner_id, write=True)
        width, height = validate_image_upload(content, filename, content_type, max_size)

        image_url = self.storage.save_file(content, filename, content_type)
        image = XRayImage(
            user_id=owner_id,
            image_url=image_url,
            file_name=filename,
            file_size=len(content),
            content_type=content_type,
            width=width,
            height=height,
            image_metadata=metadata,
        )
        self.db.add(image)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            self.storage.delete_file(image_url)
            logger.error(f"Discarded stored file {image_url} after failed commit")
            raise
        self.db.refresh(image)
        logger.info(f"X-ray {image.id} uploaded for user {owner_id}")
        return image

    def delete(self, actor: User, record_id: int, permanent: bool = True) -> Tuple[XRayImage, bool]:
        image, removed = super().delete(actor, record_id, permanent=True)
        if self.storage is not None:
            self.storage.delete_file(image.image_url)
        return image, removed
