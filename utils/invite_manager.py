# utils/invite_manager.py
import logging
from collections import namedtuple

from models import InviteStatusEnum
from utils.chain_oracle import ZERO_ADDRESS
from utils.errors import (
    AddressAlreadyClaimed,
    AddressNotRegistered,
    NoInviteAvailable,
    NotFound,
    SecretMismatch,
)
from utils.secret_verifier import verify_secret_matches_address

logger = logging.getLogger(__name__)

CheckResult = namedtuple('CheckResult', ['invite', 'is_used'])


class InviteLifecycleManager:
    """Moves invites through ``none -> pending -> used``.

    The store holds local state; the oracle is the chain's view of whether an
    address has already claimed. Dispensing tolerates an unreachable oracle,
    confirmation does not.
    """

    def __init__(self, store, oracle):
        self.store = store
        self.oracle = oracle

    def issue(self, secret, signer):
        invite = self.store.create(secret, signer)
        logger.info(f"[invite_manager] issued invite {invite.id}")
        return invite

    def issue_verified(self, secret, address):
        """Public issuance: the secret must own the address and the address
        must be registered on the contract but not yet claimed."""
        if not verify_secret_matches_address(secret, address):
            raise SecretMismatch()

        chain_data = self.oracle.check_on_chain(address)
        if chain_data.account == ZERO_ADDRESS:
            raise AddressNotRegistered()
        if chain_data.claimed:
            raise AddressAlreadyClaimed()

        return self.issue(secret, address)

    def get_next_invite(self):
        # 每个 pending 最多核对一次，再加一次用于拿到最终结果
        attempts = self.store.count_by_status(InviteStatusEnum.pending) + 1

        for _ in range(attempts):
            selection = self.store.select_next_available()
            if selection is None:
                break

            invite = selection.invite
            if selection.claimed:
                return invite

            try:
                chain_data = self.oracle.check_on_chain(invite.signer)
            except Exception as e:
                logger.warning(
                    f"[invite_manager] could not verify pending invite {invite.id} on-chain: {e}"
                )
                return invite

            if not chain_data.claimed:
                return invite

            logger.info(f"[invite_manager] pending invite {invite.id} already claimed on-chain")
            self.store.set_status(invite.id, InviteStatusEnum.used)

        raise NoInviteAvailable()

    def check_invite(self, secret, address):
        invite = self.store.get_by_secret(secret)
        if invite is None:
            raise NotFound()

        if invite.is_used:
            return CheckResult(invite, True)

        if address.lower() != invite.signer.lower():
            logger.info(
                f"[invite_manager] checking invite {invite.id} against {address}, "
                f"issued for {invite.signer}"
            )

        # 确认路径不做 fail-open：链上查询失败直接抛出 OracleUnavailable
        chain_data = self.oracle.fetch_account(address)
        if not chain_data.claimed:
            return CheckResult(invite, False)

        self.store.set_status(invite.id, InviteStatusEnum.used)
        return CheckResult(self.store.get_by_id(invite.id), True)

    def list_invites(self):
        return self.store.list_all()

    def stats(self):
        return self.store.stats()
