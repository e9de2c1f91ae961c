# models/invite_models.py
from datetime import datetime, timezone
from enum import Enum
from extensions import db


class InviteStatusEnum(Enum):
    none = "none"        # 已录入，尚未发放
    pending = "pending"  # 已发放给客户端，等待链上确认
    used = "used"        # 链上已领取（终态）


def utcnow():
    return datetime.now(timezone.utc)


class Invite(db.Model):
    __tablename__ = 'invites'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    secret = db.Column(db.String(132), unique=True, nullable=False)  # 邀请密钥（hex）
    signer = db.Column(db.String(66), nullable=False)                # 对应的链上地址
    status = db.Column(
        db.Enum(InviteStatusEnum, name='invite_status'),
        nullable=False,
        default=InviteStatusEnum.none,
        index=True,
    )
    update_date = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Invite {self.id} {self.status.value if self.status else None}>"

    @property
    def is_used(self):
        return self.status == InviteStatusEnum.used

    def to_dict(self):
        return {
            "id": self.id,
            "secret": self.secret,
            "signer": self.signer,
            "status": self.status.value if self.status else None,
            "updateDate": self.update_date.isoformat() if self.update_date else None,
        }
