"""
Access resolution for Telegram chat identities.

Resolution Strategy:
1. Find the user linked to the chat id (users.telegram_chat_id)
2. Reject unknown or inactive users
3. Regional heads operate every active store of their region
4. Store heads operate the stores granted in user_store_access
5. Anyone else (cashiers) only works in their active store
"""
import logging
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from strukbot.core.exceptions import PersistenceFailure, StorageReadFailure
from strukbot.db.session import SessionLocal
from strukbot.models.store import Region, Store
from strukbot.models.user import User
from strukbot.schemas.access import Access, StoreRef

logger = logging.getLogger(__name__)

ROLE_REGIONAL_HEAD = "Kepala Cabang"
ROLE_STORE_HEAD = "Kepala Toko"


class AccessResolver:

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def resolve(self, chat_id: int) -> Access:
        db = self.session_factory()
        try:
            user = db.query(User).filter(User.telegram_chat_id == str(chat_id)).first()
            if not user or user.status != "active":
                logger.warning(f"[Access] Rejected chat_id={chat_id}")
                return Access(has_access=False)

            role_name = user.role.name if user.role else None
            is_regional_head = role_name == ROLE_REGIONAL_HEAD
            is_store_head = role_name == ROLE_STORE_HEAD

            stores = []
            if is_regional_head and user.region_id:
                stores = (
                    db.query(Store)
                    .filter(Store.region_id == user.region_id, Store.status == "active")
                    .order_by(Store.id)
                    .all()
                )
            elif is_store_head:
                stores = sorted((s for s in user.stores if s.status == "active"), key=lambda s: s.id)

            return Access(
                has_access=True,
                user_id=user.id,
                full_name=user.full_name,
                role_name=role_name,
                store_id=user.store_id,
                active_store_id=user.active_store_id,
                region_id=user.region_id,
                is_regional_head=is_regional_head,
                is_store_head=is_store_head,
                accessible_stores=[StoreRef.model_validate(s) for s in stores],
            )
        except SQLAlchemyError as e:
            raise StorageReadFailure.from_error(e, f"access check chat_id={chat_id}") from e
        finally:
            db.close()

    def set_active_store(self, user_id: int, store_id: int) -> None:
        db = self.session_factory()
        try:
            db.query(User).filter(User.id == user_id).update({User.active_store_id: store_id})
            db.commit()
            logger.info(f"[Access] user_id={user_id} now active in store_id={store_id}")
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure.from_error(e, f"set active store user_id={user_id}") from e
        finally:
            db.close()

    def store_name(self, store_id: Optional[int]) -> Optional[str]:
        if not store_id:
            return None
        db = self.session_factory()
        try:
            store = db.query(Store).filter(Store.id == store_id).first()
            return store.name if store else None
        except SQLAlchemyError as e:
            raise StorageReadFailure.from_error(e, f"store name store_id={store_id}") from e
        finally:
            db.close()

    def region_name(self, region_id: Optional[int]) -> Optional[str]:
        if not region_id:
            return None
        db = self.session_factory()
        try:
            region = db.query(Region).filter(Region.id == region_id).first()
            return region.name if region else None
        except SQLAlchemyError as e:
            raise StorageReadFailure.from_error(e, f"region name region_id={region_id}") from e
        finally:
            db.close()
