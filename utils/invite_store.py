# utils/invite_store.py
import logging
from collections import namedtuple
from contextlib import contextmanager

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import Invite, InviteStatusEnum
from models.invite_models import utcnow
from utils.errors import DuplicateSecret, NotFound, StoreError

logger = logging.getLogger(__name__)

# claimed=True 表示本次调用刚把 none 抢占为 pending
Selection = namedtuple('Selection', ['invite', 'claimed'])


class InviteStore:
    """Durable storage of invites on top of a SQLAlchemy session.

    The store performs single-row writes and commits each one. It does not
    police the forward-only status order; that is the lifecycle manager's job.
    """

    def __init__(self, session):
        self.session = session

    @contextmanager
    def _guard(self, action):
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"[invite_store] {action} failed: {e}")
            raise StoreError(f"Invite store failure during {action}") from e

    def create(self, secret, signer):
        invite = Invite(
            secret=secret,
            signer=signer,
            status=InviteStatusEnum.none,
            update_date=utcnow(),
        )
        self.session.add(invite)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            # 只有 secret 唯一约束冲突才算重复；其它约束（如 NOT NULL）属于存储错误
            if self.get_by_secret(secret) is not None:
                raise DuplicateSecret() from e
            logger.error(f"[invite_store] create rejected by constraint: {e}")
            raise StoreError("Invite store failure during create") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"[invite_store] create failed: {e}")
            raise StoreError("Invite store failure during create") from e

        logger.info(f"[invite_store] invite {invite.id} created for signer {signer}")
        return invite

    def get_by_id(self, invite_id):
        with self._guard('get_by_id'):
            invite = self.session.get(Invite, invite_id)
        if invite is None:
            raise NotFound(f"Invite {invite_id} not found")
        return invite

    def get_by_secret(self, secret):
        with self._guard('get_by_secret'):
            return self.session.query(Invite).filter_by(secret=secret).first()

    def list_all(self):
        with self._guard('list_all'):
            return self.session.query(Invite).order_by(Invite.id.asc()).all()

    def set_status(self, invite_id, status):
        with self._guard('set_status'):
            updated = (
                self.session.query(Invite)
                .filter(Invite.id == invite_id)
                .update(
                    {Invite.status: status, Invite.update_date: utcnow()},
                    synchronize_session=False,
                )
            )
            self.session.commit()
        if updated == 0:
            raise NotFound(f"Invite {invite_id} not found")
        logger.info(f"[invite_store] invite {invite_id} -> {status.value}")

    def _claim_oldest_none(self):
        # 条件更新：只有仍为 none 的行才会被改为 pending，受影响行数为 0 说明被并发请求抢走
        while True:
            with self._guard('select_next_available'):
                candidate_id = (
                    self.session.query(Invite.id)
                    .filter(Invite.status == InviteStatusEnum.none)
                    .order_by(Invite.id.asc())
                    .limit(1)
                    .scalar()
                )
                if candidate_id is None:
                    return None

                claimed = (
                    self.session.query(Invite)
                    .filter(
                        Invite.id == candidate_id,
                        Invite.status == InviteStatusEnum.none,
                    )
                    .update(
                        {
                            Invite.status: InviteStatusEnum.pending,
                            Invite.update_date: utcnow(),
                        },
                        synchronize_session=False,
                    )
                )
                self.session.commit()

            if claimed == 1:
                return self.get_by_id(candidate_id)
            logger.info(f"[invite_store] invite {candidate_id} claimed concurrently, retrying")

    def select_next_available(self):
        """Pick the invite to dispense next.

        Oldest ``none`` invite by id wins and is atomically moved to
        ``pending``. Failing that, the longest-waiting ``pending`` invite is
        returned untouched. ``None`` when neither exists.
        """
        invite = self._claim_oldest_none()
        if invite is not None:
            return Selection(invite, True)

        with self._guard('select_next_available'):
            invite = (
                self.session.query(Invite)
                .filter(Invite.status == InviteStatusEnum.pending)
                .order_by(Invite.update_date.asc(), Invite.id.asc())
                .first()
            )
        if invite is None:
            return None
        return Selection(invite, False)

    def count_by_status(self, status):
        with self._guard('count_by_status'):
            return (
                self.session.query(func.count(Invite.id))
                .filter(Invite.status == status)
                .scalar()
            ) or 0

    def stats(self):
        with self._guard('stats'):
            total = self.session.query(func.count(Invite.id)).scalar() or 0
        used = self.count_by_status(InviteStatusEnum.used)
        pending = self.count_by_status(InviteStatusEnum.pending)

        return {
            'total': total,
            'used': used,
            'pending': pending,
            'available': total - used - pending,
        }
